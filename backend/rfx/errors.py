"""Domain errors raised by the campaign services and rendered by the app.

Four kinds reach callers: NotFound (a referenced entity is absent),
PreconditionFailed (valid entities, transition not allowed yet),
Conflict (the operation already happened) and Internal (persistence or
unexpected failure; nothing was committed).
"""
from __future__ import annotations

from flask import jsonify


class CampaignError(Exception):
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, **details):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message, "code": self.code}
        body.update(self.details)
        return body


class NotFound(CampaignError):
    status_code = 404
    default_code = "NOT_FOUND"


class PreconditionFailed(CampaignError):
    status_code = 400
    default_code = "PRECONDITION_FAILED"


class Conflict(CampaignError):
    status_code = 400
    default_code = "CONFLICT"


class Internal(CampaignError):
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["committed"] = False
        return body


def register_error_handlers(app) -> None:
    @app.errorhandler(CampaignError)
    def _campaign_error(err: CampaignError):
        if err.status_code >= 500:
            app.logger.error("%s: %s", err.code, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(413)
    def _too_large(_err):
        return jsonify({"success": False, "message": "File too large (max 5MB)", "code": "FILE_TOO_LARGE"}), 413
