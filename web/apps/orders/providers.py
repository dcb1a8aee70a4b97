"""Service provider helpers for wiring stores and the submission service.

This module exposes small factory functions that return configured store
instances and a ``SubmissionOrchestrator``:

- ``get_order_store`` picks the order backend named by
  ``settings.ORDER_STORE_BACKEND`` (``database`` or ``filesystem``).
- ``get_attachment_store`` picks the attachment backend named by
  ``settings.ATTACHMENT_BACKEND`` (``filesystem`` or ``blobs``); it validates
  ids against the active order store.
- ``get_submission_orchestrator`` returns a service wired either with the
  HTTP clients (``settings.USE_HTTP_ADAPTERS`` truthy: submit to a remote
  gateway) or with the in-process stores above.
"""

from pathlib import Path

from django.conf import settings

from .domain import SubmissionOrchestrator
from .http_adapters import BlobServiceAttachmentStore, HttpAttachmentStore, HttpOrderStore
from .repository import AttachmentUploadRepository, DatabaseOrderStore, FilesystemOrderStore
from .storage import AttachmentStore, FilesystemAttachmentStore


def get_order_store():
    """Return the configured order store.

    Raises:
        ValueError: For an unknown backend name.
    """
    backend = getattr(settings, "ORDER_STORE_BACKEND", "database")
    if backend == "database":
        return DatabaseOrderStore()
    if backend == "filesystem":
        return FilesystemOrderStore(settings.ORDERS_DATA_DIR)
    raise ValueError(f"Unknown ORDER_STORE_BACKEND: {backend}")


def get_attachment_store(orders=None) -> AttachmentStore:
    """Return the configured attachment store bound to ``orders``.

    Args:
        orders: Order store used for id validation and existence checks.
            Defaults to ``get_order_store()``.

    Raises:
        ValueError: For an unknown backend name.
    """
    orders = orders or get_order_store()
    uploads = AttachmentUploadRepository()
    backend = getattr(settings, "ATTACHMENT_BACKEND", "filesystem")
    if backend == "filesystem":
        return FilesystemAttachmentStore(
            orders,
            uploads,
            root=Path(settings.MEDIA_ROOT) / "uploads",
            base_url=settings.MEDIA_URL.rstrip("/") + "/uploads/",
        )
    if backend == "blobs":
        return BlobServiceAttachmentStore(orders, uploads)
    raise ValueError(f"Unknown ATTACHMENT_BACKEND: {backend}")


def get_submission_orchestrator() -> SubmissionOrchestrator:
    """Return a configured SubmissionOrchestrator.

    If ``settings.USE_HTTP_ADAPTERS`` is truthy the service talks to the
    gateway at ``settings.ORDERS_API_BASE_URL``; otherwise it writes through
    the local stores directly.
    """
    if getattr(settings, "USE_HTTP_ADAPTERS", False):
        return SubmissionOrchestrator(
            orders=HttpOrderStore(),
            attachments=HttpAttachmentStore(),
        )

    orders = get_order_store()
    return SubmissionOrchestrator(orders=orders, attachments=get_attachment_store(orders))
