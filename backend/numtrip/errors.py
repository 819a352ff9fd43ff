"""Typed failures raised by services and rendered by the API layer.

Services raise these at the point a business rule is violated; the
application factory registers a single handler that renders them as
``{"error": message}`` with the matching HTTP status.
"""
from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db

logger = logging.getLogger(__name__)


class NumTripError(Exception):
    status_code = 500

    def __init__(self, message: str, payload: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, **self.payload}


class BadRequest(NumTripError):
    status_code = 400


class Unauthorized(NumTripError):
    status_code = 401


class Forbidden(NumTripError):
    status_code = 403


class NotFound(NumTripError):
    status_code = 404


class Conflict(NumTripError):
    status_code = 409


class TooManyRequests(NumTripError):
    status_code = 429


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(NumTripError)
    def _numtrip_error(exc: NumTripError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(ValidationError)
    def _validation_error(exc: ValidationError):
        return jsonify({"error": "Invalid request", "fields": exc.messages}), 400

    @app.errorhandler(SQLAlchemyError)
    def _database_error(exc: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error while handling request")
        return jsonify({"error": "Internal server error"}), 500
