"""Gateway middleware: request correlation and request-size limits.

``RequestIdMiddleware`` gives every request an identifier, reused from the
incoming ``X-Request-Id`` header or generated as a UUIDv4. The id is stored on
the request, in the ``REQUEST_ID_CTX`` context variable (read by the log
filter and by the outgoing HTTP adapters) and echoed back in the
``X-Request-ID`` response header.

``ApiSizeLimitMiddleware`` rejects oversized API bodies before a view parses
them. JSON endpoints share ``API_MAX_BYTES``; the attachment upload endpoint
has its own, larger ``UPLOAD_MAX_BYTES`` budget.
"""

import uuid
import contextvars

from django.conf import settings
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")


class RequestIdMiddleware(MiddlewareMixin):
    """Django middleware that sets and returns a per-request identifier."""

    HEADER = "HTTP_X_REQUEST_ID"       # incoming header as found in request.META
    RESPONSE_HEADER = "X-Request-ID"   # header to add to outgoing responses

    def process_request(self, request):
        rid = request.META.get(self.HEADER) or str(uuid.uuid4())
        request.request_id = rid
        REQUEST_ID_CTX.set(rid)

    def process_response(self, request, response):
        response[self.RESPONSE_HEADER] = getattr(request, "request_id", REQUEST_ID_CTX.get())
        return response


class ApiSizeLimitMiddleware(MiddlewareMixin):
    """Return 413 ``PAYLOAD_TOO_LARGE`` for API bodies over their limit."""

    UPLOAD_PREFIX = "/api/uploads/"

    def limit_for(self, path: str) -> int | None:
        if path.startswith(self.UPLOAD_PREFIX):
            return settings.UPLOAD_MAX_BYTES
        if path.startswith("/api/"):
            return settings.API_MAX_BYTES
        return None

    def process_request(self, request):
        limit = self.limit_for(request.path)
        if limit is None:
            return None
        clen = request.META.get("CONTENT_LENGTH")
        if clen and clen.isdigit() and int(clen) > limit:
            return JsonResponse({"detail": "PAYLOAD_TOO_LARGE"}, status=413)
        return None
