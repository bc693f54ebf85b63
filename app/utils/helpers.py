"""Shared blueprint helpers.

require_fields:  400 tuple for missing JSON body fields
"""

from app.utils.errors import E, api_error


def require_fields(data, *fields):
    """Return a 400 error tuple naming the first missing field, else None.

    Empty strings count as missing.

        err = require_fields(data, "key", "status")
        if err:
            return err
    """
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "JSON object body required")
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            return api_error(E.VALIDATION_REQUIRED, f"{field} is required")
    return None
