import logging

from flask import Flask
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import get_config
from .errors import register_error_handlers
from .extensions import db, init_extensions
from .logging_config import configure_logging
from .services import init_services

logger = logging.getLogger(__name__)


def create_app(config_name: str | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # pytest's caplog relies on the root handlers staying in place
    if not app.config.get("TESTING"):
        configure_logging(app.config.get("LOG_LEVEL", "INFO"), bool(app.config.get("LOG_JSON")))

    # Honor proxy headers from Nginx for correct url_for(_external=True) scheme/host
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)  # type: ignore[assignment]

    init_extensions(app)

    # Models must be imported before migrations or create_all see the metadata
    from .models import audit_log, business, business_claim, city, contact, promo_code, user, validation  # noqa: F401

    init_services(app)
    register_error_handlers(app)

    # Register blueprints (v1 API)
    from .apis.v1 import register_api
    register_api(app)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/db-check")
    def db_check():
        try:
            db.session.execute(text("SELECT 1"))
            return {"db": "ok"}
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Database check failed")
            return {"db": "error", "message": str(e)}, 500

    return app
