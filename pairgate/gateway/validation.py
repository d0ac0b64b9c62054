"""Request body validation for the pairing endpoint."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# Fields whose submitted value is never echoed back or logged
SECRET_FIELDS = {"code"}

FIELD_MESSAGES = {
    "userId": "Valid userId is required",
    "deviceId": "Valid deviceId is required",
    "code": "Valid 6-digit code is required",
}


class PairRequest(BaseModel):
    """Body of ``POST /pair``."""
    model_config = ConfigDict(strict=True)

    user_id: str = Field(alias="userId", min_length=1)
    device_id: str = Field(alias="deviceId", min_length=1)
    code: str = Field(min_length=6, max_length=6)


def _field_error(field: str, value: Any) -> dict[str, Any]:
    error = {
        "field": field,
        "message": FIELD_MESSAGES.get(field, f"Invalid value for {field}"),
        "location": "body",
    }
    if value is not None and field not in SECRET_FIELDS:
        error["value"] = value
    return error


def validate_pair_request(data: Any) -> tuple[PairRequest | None, list[dict[str, Any]]]:
    """
    Validate a decoded JSON body.

    Returns (request, []) on success or (None, errors) with one entry per
    offending field.
    """
    if not isinstance(data, dict):
        return None, [{
            "field": "body",
            "message": "Request body must be a JSON object",
            "location": "body",
        }]

    try:
        return PairRequest.model_validate(data), []
    except ValidationError as e:
        errors = []
        seen: set[str] = set()
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "body"
            if field in seen:
                continue
            seen.add(field)
            errors.append(_field_error(field, data.get(field)))
        return None, errors
