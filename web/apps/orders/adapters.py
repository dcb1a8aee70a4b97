"""In-process stub adapters for the orders domain ports.

These stubs implement ``OrderStorePort`` and ``AttachmentStorePort`` without
any database, disk or network access. They are intended for unit tests and
local development where deterministic behavior is useful and real backends
are not required.
"""

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from .domain import OrderRecord, OrderSnapshot
from .drafts import Attachment
from .errors import PersistenceError
from .repository import UUID_RE
from .storage import AttachmentStore


class InMemoryOrderStore:
    """Stub implementation of ``OrderStorePort``.

    Assigns UUID4 identifiers and keeps records in a dict. Setting
    ``fail`` makes every ``create`` raise ``PersistenceError``.
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.records: dict[str, OrderRecord] = {}

    def is_valid_id(self, order_id) -> bool:
        return isinstance(order_id, str) and bool(UUID_RE.fullmatch(order_id))

    def create(self, snapshot: OrderSnapshot) -> str:
        if self.fail:
            raise PersistenceError("order store unavailable")
        order_id = str(uuid.uuid4())
        self.records[order_id] = OrderRecord(order_id, datetime.now(timezone.utc), snapshot)
        return order_id

    def exists(self, order_id: str) -> bool:
        return order_id in self.records

    def get(self, order_id: str) -> Optional[OrderRecord]:
        return self.records.get(order_id)


class InMemoryAttachmentStore(AttachmentStore):
    """Stub implementation of ``AttachmentStorePort``.

    Keeps bytes in a dict keyed by storage address and returns
    ``memory://<address>`` references. Slots listed in ``fail_slots`` raise
    ``PersistenceError`` after validation, which lets tests drive partial
    submissions deterministically. ``calls`` records every write as
    ``(section_index, file_index)`` in issue order.
    """

    def __init__(self, orders, uploads=None, fail_slots: Iterable[tuple[int, int]] = ()):
        super().__init__(orders, uploads)
        self.fail_slots = set(fail_slots)
        self.blobs: dict[str, bytes] = {}
        self.calls: list[tuple[int, int]] = []

    def _write(self, address: str, attachment: Attachment) -> str:
        slot = _slot_of(address)
        self.calls.append(slot)
        if slot in self.fail_slots:
            raise PersistenceError(f"write failed for {address}")
        self.blobs[address] = attachment.data
        return f"memory://{address}"


def _slot_of(address: str) -> tuple[int, int]:
    # "<order>/s<S>_f<F>_<name>"
    s_part, f_part = address.split("/", 1)[1].split("_", 2)[:2]
    return int(s_part[1:]), int(f_part[1:])
