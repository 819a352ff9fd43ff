from flask import Blueprint, Flask, g, request, current_app

from ...modules.admin.routes import bp as admin_bp
from ...modules.claims.routes import bp as claims_bp
from ...modules.imports.routes import bp as imports_bp


def register_api(app: Flask) -> None:
    api_v1 = Blueprint("api_v1", __name__, url_prefix="/api/v1")

    # Lightweight auth context loader.
    # A signed bearer token issued by our app always works; in development
    # (DEBUG=True) an `X-User-Id` or `Authorization: User <id>` header is also
    # accepted to simplify local testing.
    @api_v1.before_request  # type: ignore
    def _load_current_user():
        from ...extensions import db
        from ...models.user import User  # local import to avoid circulars
        from ...security import DEFAULT_MAX_AGE, verify_token

        uid: int | None = None
        debug_mode = bool(current_app.config.get("DEBUG"))

        # Bearer token takes precedence
        auth = request.headers.get("Authorization") or ""
        if auth.lower().startswith("bearer "):
            identity = verify_token(
                auth[7:].strip(),
                current_app.config["SECRET_KEY"],
                max_age=int(current_app.config.get("AUTH_TOKEN_MAX_AGE", DEFAULT_MAX_AGE)),
            )
            uid = identity.user_id if identity is not None else None
        elif debug_mode:
            raw = request.headers.get("X-User-Id") or ""
            if not raw and auth.lower().startswith("user "):
                raw = auth[5:].strip()
            if raw.isdigit() and int(raw) > 0:
                uid = int(raw)

        user_obj = db.session.get(User, uid) if uid is not None else None
        # Authorization decisions use the stored role, not the one in the token
        g.current_user = user_obj  # type: ignore[attr-defined]
        g.current_user_id = user_obj.id if user_obj is not None else None  # type: ignore[attr-defined]

    # Mount feature blueprints
    api_v1.register_blueprint(claims_bp)
    api_v1.register_blueprint(admin_bp)
    api_v1.register_blueprint(imports_bp)

    app.register_blueprint(api_v1)
