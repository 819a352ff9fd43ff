from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS

# Flask extensions singletons

db = SQLAlchemy()
migrate = Migrate()
cors = CORS()

# Local Next.js front end
_DEV_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def cors_origins(app: Flask) -> list[str]:
	"""Comma-separated CORS_ALLOW_ORIGINS; without it only non-production apps allow the dev origins."""
	raw = (app.config.get("CORS_ALLOW_ORIGINS") or "").strip()
	origins = [o.strip() for o in raw.split(",") if o.strip()]
	if not origins and not app.config.get("PRODUCTION"):
		origins = list(_DEV_ORIGINS)
	return origins


def init_extensions(app: Flask) -> None:
	cors.init_app(app, resources={r"/api/*": {"origins": cors_origins(app)}})
	db.init_app(app)
	migrate.init_app(app, db)
