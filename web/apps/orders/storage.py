"""Attachment stores: validation, slot addressing and the filesystem backend.

Every backend shares the same ``put`` pipeline, implemented once in
``AttachmentStore``:

1. ``InvalidOrderId`` if the id does not have the active order store's format.
2. ``InvalidCoordinate`` if either index is not a non-negative integer.
3. ``MissingFile`` if there is no attachment (or it has no name).
4. ``UnknownOrderId`` if the id is well-formed but no such order exists.
5. Compute the storage address and hand the bytes to the backend.
6. Record an ``AttachmentUpload`` row.

Steps 1-4 never touch attachment storage.

Addressing: ``<order_id>/s<section>_f<file>_<safe name>``. Characters outside
``[A-Za-z0-9._-]`` in the file name are replaced with ``_``. Re-uploading the
same slot with the same sanitized name overwrites the earlier bytes; a
different name coexists next to it.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from .domain import AttachmentUpload, OrderStorePort
from .drafts import Attachment
from .errors import InvalidCoordinate, InvalidOrderId, MissingFile, PersistenceError, UnknownOrderId

logger = logging.getLogger("portfolio.orders.storage")

UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")
MAX_NAME_LEN = 150


def safe_name(name: str) -> str:
    """Replace every character outside the allow-list with ``_``.

    Long names are shortened from the front of the stem so the extension
    survives.
    """
    cleaned = UNSAFE_CHARS_RE.sub("_", name)
    if len(cleaned) > MAX_NAME_LEN:
        stem, dot, ext = cleaned.rpartition(".")
        if dot and len(ext) < 16:
            cleaned = stem[: MAX_NAME_LEN - len(ext) - 1] + "." + ext
        else:
            cleaned = cleaned[:MAX_NAME_LEN]
    return cleaned


def storage_address(order_id: str, section_index: int, file_index: int, file_name: str) -> str:
    return f"{order_id}/s{section_index}_f{file_index}_{safe_name(file_name)}"


def is_valid_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_upload(order_id, section_index, file_index, attachment: Optional[Attachment], is_valid_id) -> None:
    """Run the format checks of an upload, in order, without any I/O.

    Raises:
        InvalidOrderId: ``order_id`` fails ``is_valid_id``.
        InvalidCoordinate: An index is not a non-negative integer.
        MissingFile: No attachment, or an attachment without a name.
    """
    if not isinstance(order_id, str) or not is_valid_id(order_id):
        raise InvalidOrderId(f"Malformed order id: {order_id!r}")
    if not is_valid_index(section_index) or not is_valid_index(file_index):
        raise InvalidCoordinate(f"Invalid slot ({section_index!r}, {file_index!r})")
    if attachment is None or not attachment.name:
        raise MissingFile("Missing file")


class AttachmentStore:
    """Base attachment store; subclasses implement ``_write``.

    Args:
        orders: Order store whose id format and records this store checks.
        uploads: Optional recorder for ``AttachmentUpload`` rows (the
            Django-backed ``AttachmentUploadRepository`` in production).
    """

    def __init__(self, orders: OrderStorePort, uploads=None):
        self.orders = orders
        self.uploads = uploads

    def put(self, order_id: str, section_index: int, file_index: int, attachment: Optional[Attachment]) -> str:
        """Store one slot's file and return its stored reference."""
        return self.store(order_id, section_index, file_index, attachment).stored_reference

    def store(self, order_id, section_index, file_index, attachment: Optional[Attachment]) -> AttachmentUpload:
        """Like ``put`` but return the full upload record (address included)."""
        validate_upload(order_id, section_index, file_index, attachment, self.orders.is_valid_id)
        if not self.orders.exists(order_id):
            raise UnknownOrderId(f"No order {order_id}")

        address = storage_address(order_id, section_index, file_index, attachment.name)
        reference = self._write(address, attachment)
        upload = AttachmentUpload(
            order_id=order_id,
            section_index=section_index,
            file_index=file_index,
            original_file_name=attachment.name,
            storage_address=address,
            stored_reference=reference,
            mime_type=attachment.mime_type,
            size=attachment.size,
        )
        if self.uploads is not None:
            upload = self.uploads.record(upload)
        logger.info("attachment stored", extra={"order_id": order_id, "address": address, "size": attachment.size})
        return upload

    def _write(self, address: str, attachment: Attachment) -> str:
        """Persist the bytes at ``address`` and return the stored reference."""
        raise NotImplementedError()


class FilesystemAttachmentStore(AttachmentStore):
    """Writes attachments below a root directory (``MEDIA_ROOT/uploads``).

    The stored reference is ``base_url`` + address, e.g.
    ``/media/uploads/<order_id>/s0_f1_report.pdf``.
    """

    def __init__(self, orders: OrderStorePort, uploads=None, *, root: str | Path, base_url: str = "/media/uploads/"):
        super().__init__(orders, uploads)
        self.root = Path(root)
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"

    def path_for(self, address: str) -> Path:
        root = os.path.realpath(self.root)
        target = os.path.realpath(os.path.join(root, address))
        if os.path.commonpath([root, target]) != root:
            raise PersistenceError(f"Address escapes storage root: {address}")
        return Path(target)

    def _write(self, address: str, attachment: Attachment) -> str:
        target = self.path_for(address)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # readers never see a half-written file
            fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(attachment.data)
                os.replace(tmp, target)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise PersistenceError(str(e)) from e
        return self.base_url + address
