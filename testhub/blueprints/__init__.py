"""
Test Management Hub
Blueprint helpers.
"""

from flask import request

from testhub.core.exceptions import ValidationError


def json_body() -> dict:
    """Parsed JSON object body; an empty or missing body reads as ``{}``."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def deleted_response(entity_id, counts):
    """Body returned by every cascade delete endpoint."""
    return {"deleted": True, "id": entity_id, "cascade": counts}
