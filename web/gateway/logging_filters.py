"""Logging filters for enriching log records with request context.

``RequestIdFilter`` copies the current request id (set by
``RequestIdMiddleware``) onto every record so the JSON formatter configured
in ``settings.LOGGING`` can emit it. Records logged outside a request, for
example by the ``submit_order`` management command, get ``"-"``.
"""

from logging import Filter, LogRecord
from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records."""

    def filter(self, record: LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True
