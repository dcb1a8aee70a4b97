"""HTTP views for the orders app.

This module contains DRF API views for the two-phase submission protocol.
Views are kept intentionally small: they validate requests (via Pydantic or
the store's own checks), delegate to the configured stores, and map domain
error codes to HTTP responses.

The views obtain stores from ``get_order_store()`` / ``get_attachment_store()``
which return the database or filesystem order backend and the filesystem or
blob-service attachment backend depending on runtime settings. This allows
tests and deployments to swap implementations without changing view logic.

Idempotency: when an ``Idempotency-Key`` header is provided, the create
endpoint ensures idempotent processing. The first request creates a record
and, upon completion, stores the response. Subsequent retries with the same
payload return the stored response with ``Idempotent-Replay: true``. If the
same key is reused with a different payload, the endpoint returns HTTP 409.
"""
import logging
import re

from pydantic import ValidationError as PydanticValidationError
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.throttling import ScopedRateThrottle

from . import providers
from .drafts import Attachment
from .errors import MissingContact, PersistenceError, UnknownOrderId, ValidationError
from .idempotency import get_or_create_idempotent, finalize, release
from .repository import AttachmentUploadRepository
from .schemas import CreateOrderDTO, OrderReadDTO, UploadResponseDTO

logger = logging.getLogger("portfolio.orders.api")

INDEX_RE = re.compile(r"\s*-?\d+\s*")


class OrdersPingView(APIView):
    """Simple health-check endpoint for the orders module."""

    def get(self, request):
        return Response({"ok": True})


class OrdersCollectionView(APIView):
    """Create an order record (phase one of a submission) or list orders.

    POST validates the snapshot with a Pydantic DTO, requires non-blank
    ``name`` and ``email``, persists the record through the configured order
    store and returns the assigned id. Attachments are never part of this
    request.
    """
    throttle_classes = [ScopedRateThrottle]
    parser_classes = [JSONParser]

    def get_throttles(self):
        # DRF evaluates throttles in initial(), before get/post
        self.throttle_scope = "orders_list" if self.request.method == "GET" else "orders_create"
        return [throttle() for throttle in self.throttle_classes]

    def get(self, request):
        try:
            page = int(request.GET.get("page", 1))
            page_size = min(int(request.GET.get("page_size", 20)), 100)
        except ValueError:
            return Response({"detail": "INVALID_PAGE"}, status=status.HTTP_400_BAD_REQUEST)

        count, number, records = providers.get_order_store().page(page, max(page_size, 1))
        results = [
            {
                "id": r.order_id,
                "name": r.snapshot.name,
                "email": r.snapshot.email,
                "created_at": r.created_at.isoformat(),
            }
            for r in records
        ]
        return Response(
            {"count": count, "page": number, "page_size": page_size, "results": results},
            status=200,
        )

    def post(self, request):
        """Create a new order record.

        Args:
            request (Request): DRF request with the JSON snapshot body and an
                optional ``Idempotency-Key`` header.

        Returns:
            Response: One of the following responses.
            - 201 with {id} when the order is created.
            - replayed status/body with ``Idempotent-Replay: true`` when the
              same idempotency key and payload are retried.
            - 409 with {detail: "IDEMPOTENCY_CONFLICT"} when the same key is
              reused with a different payload.
            - 409 with {detail: "IDEMPOTENCY_IN_PROGRESS"} when a request with
              the same key is still being processed.
            - 400 with {detail: "NAME_AND_EMAIL_REQUIRED", message} when name
              or email is blank; 400 with {detail} for other schema errors.
            - 503 with {detail: "PERSISTENCE_ERROR"} when the store fails.
        """
        idem_key = request.headers.get("Idempotency-Key")

        # 1) Pydantic validation
        try:
            dto = CreateOrderDTO.model_validate(request.data)
        except PydanticValidationError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        if not dto.has_contact:
            err = MissingContact()
            return Response({"detail": err.code, "message": err.message}, status=status.HTTP_400_BAD_REQUEST)

        # 2) Idempotency get-or-create
        rec = None
        if idem_key:
            try:
                existing, rec = get_or_create_idempotent(idem_key, request.data)
            except ValueError:
                return Response({"detail": "IDEMPOTENCY_CONFLICT"}, status=status.HTTP_409_CONFLICT)
            if existing:
                if not rec.response_status:
                    # first request with this key has not finished yet
                    return Response({"detail": "IDEMPOTENCY_IN_PROGRESS"}, status=status.HTTP_409_CONFLICT)
                resp = Response(rec.response_body, status=rec.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        # 3) Persistence
        try:
            order_id = providers.get_order_store().create(dto.to_domain())
        except PersistenceError as e:
            logger.error("order create failed", extra={"error": e.message})
            if rec:
                release(rec)
            return Response({"detail": e.code}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        body = {"id": order_id}
        logger.info("order created", extra={"order_id": order_id})
        if rec:
            finalize(rec, status.HTTP_201_CREATED, body, order_id=order_id)
        return Response(body, status=status.HTTP_201_CREATED)


class RetrieveOrderView(APIView):
    """Return an order record with the latest upload of each slot."""
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def get(self, request, oid: str):
        try:
            record = providers.get_order_store().get(oid)
        except PersistenceError as e:
            return Response({"detail": e.code}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        if record is None:
            return Response({"detail": "NOT_FOUND"}, status=status.HTTP_404_NOT_FOUND)

        uploads = AttachmentUploadRepository().latest_for_order(record.order_id)
        dto = OrderReadDTO.from_domain(record, uploads)
        return Response(dto.to_payload(), status=200)


def _coerce_index(raw):
    """Turn a decimal form value into an int; anything else is left for validation to reject."""
    if isinstance(raw, str) and INDEX_RE.fullmatch(raw):
        return int(raw)
    return raw


def _first(data, *names):
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return None


class AttachmentUploadView(APIView):
    """Store one attached file for an order slot (phase two of a submission).

    Multipart fields: ``orderId``, ``sectionIdx``, ``fileIdx`` and ``file``
    (snake_case ``order_id`` / ``section_index`` / ``file_index`` are
    accepted too). Validation order and failure codes are those of
    ``AttachmentStore.put``.
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "uploads"
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        """Store the uploaded file.

        Returns:
            Response: One of the following responses.
            - 201 with {order_id, section_index, file_index,
              original_file_name, stored_reference, address}.
            - 400 with {detail: INVALID_ORDER_ID | INVALID_COORDINATE |
              MISSING_FILE}.
            - 404 with {detail: "UNKNOWN_ORDER_ID"}.
            - 503 with {detail: "PERSISTENCE_ERROR"}.
        """
        order_id = _first(request.data, "orderId", "order_id")
        section_index = _coerce_index(_first(request.data, "sectionIdx", "section_index"))
        file_index = _coerce_index(_first(request.data, "fileIdx", "file_index"))

        upload = request.FILES.get("file")
        attachment = None
        if upload is not None:
            attachment = Attachment(
                name=upload.name,
                mime_type=upload.content_type or "application/octet-stream",
                data=upload.read(),
            )

        try:
            stored = providers.get_attachment_store().store(order_id, section_index, file_index, attachment)
        except UnknownOrderId as e:
            return Response({"detail": e.code, "message": e.message}, status=status.HTTP_404_NOT_FOUND)
        except ValidationError as e:
            return Response({"detail": e.code, "message": e.message}, status=status.HTTP_400_BAD_REQUEST)
        except PersistenceError as e:
            logger.error("attachment store failed", extra={"order_id": order_id, "error": e.message})
            return Response({"detail": e.code}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(UploadResponseDTO.from_domain(stored).model_dump(), status=status.HTTP_201_CREATED)
