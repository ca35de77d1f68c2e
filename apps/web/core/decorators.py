"""
Decorators for request handling and validation.
"""

import json
import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from django.core.cache import cache
from django.http import HttpRequest, JsonResponse

from apps.web.core.correlation import get_correlation_id
from apps.web.core.exceptions import (
    StaleCartItem,
    StorefrontError,
    ValidationFailure,
)
from apps.web.core.http import json_response, schema_response
from apps.web.core.serializers import (
    ErrorResponse,
    StaleCartResponse,
    StaleLineSchema,
    TryAgainResponse,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from apps.web.erp.exceptions import ERPError, TransientFailure

logger = logging.getLogger(__name__)

IDEMPOTENCY_TTL = 86400  # 24 hours


def idempotency_key_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator that requires an Idempotency-Key header for POST requests.

    If the same key is used twice on the same view, returns the cached
    response from the first request. Cached responses are stored for 24 hours.
    The key is exposed to the view as `request.idempotency_key`.

    Usage:
        @idempotency_key_required
        def checkout(request):
            ...
    """

    @wraps(view_func)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> Any:
        key = request.headers.get("Idempotency-Key", "").strip()

        if not key or len(key) > 128:
            return json_response(
                {"error": "Idempotency-Key header is required"},
                status=400,
            )

        cache_key = f"idempotency:{view_func.__module__}.{view_func.__name__}:{key}"
        cached = cache.get(cache_key)

        if cached:
            return json_response(cached["data"], status=cached["status"])

        request.idempotency_key = key  # type: ignore[attr-defined]
        response = view_func(request, *args, **kwargs)

        # Cache successful responses only; errors may be retried with the same key
        if response.status_code < 400:
            cache.set(
                cache_key,
                {
                    "data": json.loads(response.content),
                    "status": response.status_code,
                },
                timeout=IDEMPOTENCY_TTL,
            )

        return response

    return wrapper


def storefront_errors(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Map storefront and ERP exceptions to JSON error responses.

    Correctable errors (validation, stale cart, provider, slot, closed store)
    go back to the caller as-is. ERP failures are logged and surfaced as a
    generic "try again" carrying only the correlation id.
    """

    @wraps(view_func)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        try:
            return view_func(request, *args, **kwargs)
        except ValidationFailure as e:
            body = ValidationErrorResponse(
                error="validation_error",
                details=[
                    ValidationErrorDetail(field=field, message=message)
                    for field, message in e.details
                ]
                or [ValidationErrorDetail(field="", message=e.message)],
            )
            return schema_response(body, status=400)
        except StaleCartItem as e:
            stale = StaleCartResponse(
                error="stale_cart_item",
                message=e.message,
                lines=[
                    StaleLineSchema(
                        product_id=line.product_id,
                        reason=line.reason,  # type: ignore[arg-type]
                        current_price=line.current_price,
                    )
                    for line in e.lines
                ],
            )
            return schema_response(stale, status=409)
        except StorefrontError as e:
            return schema_response(ErrorResponse(error=e.code, message=e.message), status=409)
        except TransientFailure as e:
            logger.warning(
                "ERP unavailable during %s: %s.%s entity=%s attempts=%d",
                view_func.__name__,
                e.model,
                e.method,
                e.entity,
                e.attempts,
            )
            return schema_response(
                TryAgainResponse(request_id=get_correlation_id()), status=503
            )
        except ERPError as e:
            logger.error(
                "ERP rejected call during %s: %s.%s entity=%s: %s",
                view_func.__name__,
                e.model,
                e.method,
                e.entity,
                e.message,
            )
            return schema_response(
                TryAgainResponse(request_id=get_correlation_id()), status=502
            )

    return wrapper
