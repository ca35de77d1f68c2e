"""
Correlation id middleware - tags each request and its log lines.
"""

import re
import uuid
from collections.abc import Callable

from django.http import HttpRequest, HttpResponse

from apps.web.core.correlation import correlation_id

REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9-]{8,64}$")


class CorrelationIdMiddleware:
    """
    Middleware that assigns a correlation id to the request.

    The id is taken from the inbound X-Request-ID header when it is
    well-formed, otherwise generated. It is stored for the duration of the
    request (so log records carry it), exposed as `request.correlation_id`
    and echoed back in the response header.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        inbound = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = inbound if REQUEST_ID_RE.match(inbound) else uuid.uuid4().hex

        token = correlation_id.set(request_id)
        request.correlation_id = request_id  # type: ignore[attr-defined]
        try:
            response = self.get_response(request)
        finally:
            correlation_id.reset(token)

        response[REQUEST_ID_HEADER] = request_id
        return response
