"""Repository layer for persisting orders and upload records.

This module contains the order store backends used by the application and
the repository that records attachment uploads. Both order stores satisfy
``OrderStorePort``: they assign a unique identifier that is safe in a URL
path segment and in a file-system path segment, and they report storage
faults as ``PersistenceError`` so the domain layer is not coupled to Django
ORM or file-system details.
"""

import json
import re
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path

from django.core.paginator import Paginator
from django.db import DatabaseError

from .domain import AttachmentUpload, OrderRecord, OrderSnapshot
from .errors import PersistenceError
from .models import AttachmentUploadModel, OrderRecordModel

UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}")
TOKEN_ID_RE = re.compile(r"[0-9]{13}_[0-9a-f]{16}")


class DatabaseOrderStore:
    """Order store backed by the ``orders`` table.

    Identifiers are random UUID4 values generated on insert, so concurrent
    writers can never receive the same id.
    """

    def is_valid_id(self, order_id) -> bool:
        return isinstance(order_id, str) and bool(UUID_RE.fullmatch(order_id))

    def create(self, snapshot: OrderSnapshot) -> str:
        """Persist a new order record.

        Args:
            snapshot: Attachment-free order snapshot.

        Returns:
            The new order id (UUID string).

        Raises:
            PersistenceError: On any database fault.
        """
        try:
            obj = OrderRecordModel.objects.create(
                name=snapshot.name,
                email=snapshot.email,
                hosting_option=snapshot.to_dict()["hosting_option"],
                snapshot=snapshot.to_dict(),
            )
        except DatabaseError as e:
            raise PersistenceError(str(e)) from e
        return str(obj.id)  # <-- UUID

    def exists(self, order_id: str) -> bool:
        if not self.is_valid_id(order_id):
            return False
        try:
            return OrderRecordModel.objects.filter(id=order_id).exists()
        except DatabaseError as e:
            raise PersistenceError(str(e)) from e

    def get(self, order_id: str) -> OrderRecord | None:
        if not self.is_valid_id(order_id):
            return None
        try:
            obj = OrderRecordModel.objects.filter(id=order_id).first()
        except DatabaseError as e:
            raise PersistenceError(str(e)) from e
        return self._to_record(obj) if obj else None

    def page(self, page: int = 1, page_size: int = 20) -> tuple[int, int, list[OrderRecord]]:
        """Return ``(count, page_number, records)`` newest first."""
        p = Paginator(OrderRecordModel.objects.order_by("-created_at", "-id"), page_size)
        page_obj = p.get_page(page)
        return p.count, page_obj.number, [self._to_record(o) for o in page_obj.object_list]

    @staticmethod
    def _to_record(obj: OrderRecordModel) -> OrderRecord:
        return OrderRecord(
            order_id=str(obj.id),
            created_at=obj.created_at,
            snapshot=OrderSnapshot.from_dict(obj.snapshot),
        )


class FilesystemOrderStore:
    """Order store writing one JSON document per order.

    Layout: ``<base_dir>/orders/<order_id>.json``. Identifiers are
    ``<epoch-ms>_<16 hex chars>``; the file is opened in exclusive-create mode
    so an identifier can never be handed out twice, even across processes.
    """

    def __init__(self, base_dir: str | Path):
        self.orders_dir = Path(base_dir) / "orders"

    def is_valid_id(self, order_id) -> bool:
        return isinstance(order_id, str) and bool(TOKEN_ID_RE.fullmatch(order_id))

    def _path(self, order_id: str) -> Path:
        return self.orders_dir / f"{order_id}.json"

    def _new_id(self) -> str:
        return f"{int(time.time() * 1000):013d}_{secrets.token_hex(8)}"

    def create(self, snapshot: OrderSnapshot) -> str:
        created_at = datetime.now(timezone.utc)
        try:
            self.orders_dir.mkdir(parents=True, exist_ok=True)
            for _ in range(3):
                order_id = self._new_id()
                try:
                    with open(self._path(order_id), "x", encoding="utf-8") as fh:
                        json.dump(
                            {"id": order_id, "created_at": created_at.isoformat(), "order": snapshot.to_dict()},
                            fh,
                            indent=2,
                        )
                    return order_id
                except FileExistsError:
                    continue
        except OSError as e:
            raise PersistenceError(str(e)) from e
        raise PersistenceError("Could not allocate a unique order id")

    def exists(self, order_id: str) -> bool:
        return self.is_valid_id(order_id) and self._path(order_id).is_file()

    def get(self, order_id: str) -> OrderRecord | None:
        if not self.exists(order_id):
            return None
        try:
            data = json.loads(self._path(order_id).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(str(e)) from e
        return OrderRecord(
            order_id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            snapshot=OrderSnapshot.from_dict(data["order"]),
        )

    def page(self, page: int = 1, page_size: int = 20) -> tuple[int, int, list[OrderRecord]]:
        if not self.orders_dir.is_dir():
            return 0, 1, []
        # ids start with the creation time, so name order is creation order
        ids = sorted((p.stem for p in self.orders_dir.glob("*.json") if self.is_valid_id(p.stem)), reverse=True)
        p = Paginator(ids, page_size)
        page_obj = p.get_page(page)
        return p.count, page_obj.number, [r for r in (self.get(i) for i in page_obj.object_list) if r]


class AttachmentUploadRepository:
    """Records successful uploads in the ``order_attachments`` table."""

    def record(self, upload: AttachmentUpload) -> AttachmentUpload:
        """Persist one upload row and return it with its creation time.

        Raises:
            PersistenceError: On any database fault.
        """
        try:
            obj = AttachmentUploadModel.objects.create(
                order_id=upload.order_id,
                section_index=upload.section_index,
                file_index=upload.file_index,
                original_file_name=upload.original_file_name,
                mime_type=upload.mime_type,
                size=upload.size,
                storage_address=upload.storage_address,
                stored_reference=upload.stored_reference,
            )
        except DatabaseError as e:
            raise PersistenceError(str(e)) from e
        return self._to_domain(obj)

    def history(self, order_id: str) -> list[AttachmentUpload]:
        """All uploads of an order, newest first."""
        qs = AttachmentUploadModel.objects.filter(order_id=order_id).order_by("-created_at", "-id")
        return [self._to_domain(o) for o in qs]

    def latest_for_order(self, order_id: str) -> list[AttachmentUpload]:
        """Most recent upload per (section, file) slot, in slot order."""
        latest: dict[tuple[int, int], AttachmentUpload] = {}
        for up in self.history(order_id):
            latest.setdefault((up.section_index, up.file_index), up)
        return [latest[k] for k in sorted(latest)]

    @staticmethod
    def _to_domain(obj: AttachmentUploadModel) -> AttachmentUpload:
        return AttachmentUpload(
            order_id=obj.order_id,
            section_index=obj.section_index,
            file_index=obj.file_index,
            original_file_name=obj.original_file_name,
            storage_address=obj.storage_address,
            stored_reference=obj.stored_reference,
            mime_type=obj.mime_type,
            size=obj.size,
            created_at=obj.created_at,
        )
