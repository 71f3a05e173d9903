# Overview: Shared JSON error rendering for API routes.

from flask import current_app, jsonify, request

from ..errors import MshopError


def json_error(exc: Exception, action: str):
    """
    Render a failure as JSON with the status of its error kind.

    Business rejections are logged at WARNING; anything else is unexpected
    and logged with its traceback.
    """
    if isinstance(exc, MshopError):
        current_app.logger.warning(
            "Rejected %s: %s (%s, entity=%s)", action, exc.message, exc.kind, exc.entity_id,
        )
        return jsonify(exc.to_dict()), exc.http_status
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


def get_json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
