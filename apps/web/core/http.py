"""JSON request/response helpers shared by the storefront API views."""

import json
from typing import Any, TypeVar

from django.http import HttpRequest, JsonResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from apps.web.core.exceptions import ValidationFailure

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def cors_headers() -> dict[str, str]:
    """CORS headers for storefront access."""
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Idempotency-Key, X-Request-ID",
    }


def json_response(data: dict[str, Any] | list[Any], status: int = 200) -> JsonResponse:
    """Create a JSON response with CORS headers."""
    response = JsonResponse(data, status=status, safe=isinstance(data, dict))
    for key, value in cors_headers().items():
        response[key] = value
    return response


def schema_response(schema: BaseModel, status: int = 200) -> JsonResponse:
    return json_response(schema.model_dump(mode="json"), status=status)


def parse_body(request: HttpRequest, schema: type[SchemaT]) -> SchemaT:
    """
    Parse and validate a JSON request body.

    Raises:
        ValidationFailure: If the body is not JSON or fails schema validation.
    """
    try:
        body = json.loads(request.body or b"{}")
    except json.JSONDecodeError as e:
        raise ValidationFailure.for_field("body", "Invalid JSON in request body") from e
    return parse_data(body, schema)


def parse_data(data: Any, schema: type[SchemaT]) -> SchemaT:
    """Validate already-decoded data (query params, JSON body) against a schema."""
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationFailure(
            "Invalid request",
            details=[
                (".".join(str(loc) for loc in err["loc"]), err["msg"])
                for err in e.errors()
            ],
        ) from e
