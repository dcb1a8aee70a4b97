"""Tests for attachment validation, addressing and the filesystem backend."""

import pytest

from apps.orders.adapters import InMemoryAttachmentStore, InMemoryOrderStore
from apps.orders.domain import OrderSnapshot
from apps.orders.drafts import Attachment
from apps.orders.errors import (
    InvalidCoordinate,
    InvalidOrderId,
    MissingFile,
    PersistenceError,
    UnknownOrderId,
)
from apps.orders.storage import FilesystemAttachmentStore, safe_name, storage_address


def _pdf(name="report.pdf", data=b"%PDF"):
    return Attachment(name=name, mime_type="application/pdf", data=data)


@pytest.fixture
def orders():
    return InMemoryOrderStore()


@pytest.fixture
def order_id(orders):
    return orders.create(OrderSnapshot(name="Ada", email="ada@example.com"))


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("report.pdf", "report.pdf"),
        ("report (1).pdf", "report__1_.pdf"),
        ("../../etc/passwd", ".._.._etc_passwd"),
        ("résumé.pdf", "r_sum_.pdf"),
    ],
)
def test_safe_name(raw, expected):
    assert safe_name(raw) == expected


def test_safe_name_truncates_but_keeps_extension():
    name = safe_name("a" * 400 + ".pdf")
    assert len(name) == 150
    assert name.endswith(".pdf")


def test_storage_address_is_deterministic():
    assert storage_address("abc", 2, 3, "my cv.pdf") == "abc/s2_f3_my_cv.pdf"


def test_put_rejects_malformed_order_id_before_anything_else(orders):
    store = InMemoryAttachmentStore(orders)
    # bad id, bad coordinate and missing file together: id wins
    with pytest.raises(InvalidOrderId) as e:
        store.put("not-a-real-id", -1, 0, None)
    assert not isinstance(e.value, UnknownOrderId)
    assert store.calls == []


def test_put_rejects_negative_coordinate(orders, order_id):
    store = InMemoryAttachmentStore(orders)
    with pytest.raises(InvalidCoordinate):
        store.put(order_id, -1, 0, _pdf())
    with pytest.raises(InvalidCoordinate):
        store.put(order_id, 0, True, _pdf())
    assert store.calls == []


def test_put_rejects_missing_file(orders, order_id):
    store = InMemoryAttachmentStore(orders)
    with pytest.raises(MissingFile):
        store.put(order_id, 0, 0, None)
    with pytest.raises(MissingFile):
        store.put(order_id, 0, 0, Attachment(name="", mime_type="text/plain", data=b"x"))


def test_put_unknown_but_well_formed_id(orders):
    store = InMemoryAttachmentStore(orders)
    with pytest.raises(UnknownOrderId) as e:
        store.put("1b4e28ba-2fa1-41d2-883f-0016d3cca427", 0, 0, _pdf())
    assert str(e.value) == "UNKNOWN_ORDER_ID"
    assert store.calls == []


def test_filesystem_store_writes_under_root(tmp_path, orders, order_id):
    store = FilesystemAttachmentStore(orders, root=tmp_path / "uploads", base_url="/media/uploads")
    ref = store.put(order_id, 0, 1, _pdf("report (1).pdf"))
    assert ref == f"/media/uploads/{order_id}/s0_f1_report__1_.pdf"
    assert (tmp_path / "uploads" / order_id / "s0_f1_report__1_.pdf").read_bytes() == b"%PDF"


def test_same_name_overwrites_and_different_name_coexists(tmp_path, orders, order_id):
    store = FilesystemAttachmentStore(orders, root=tmp_path)
    store.put(order_id, 0, 0, _pdf("report.pdf", b"v1"))
    store.put(order_id, 0, 0, _pdf("report.pdf", b"v2"))
    store.put(order_id, 0, 0, _pdf("report (1).pdf", b"other"))

    files = sorted(p.name for p in (tmp_path / order_id).iterdir())
    assert files == ["s0_f0_report.pdf", "s0_f0_report__1_.pdf"]
    assert (tmp_path / order_id / "s0_f0_report.pdf").read_bytes() == b"v2"


def test_path_for_refuses_escaping_root(tmp_path, orders):
    store = FilesystemAttachmentStore(orders, root=tmp_path / "uploads")
    with pytest.raises(PersistenceError):
        store.path_for("../outside.txt")


def test_write_failure_maps_to_persistence_error(tmp_path, orders, order_id):
    blocker = tmp_path / "uploads"
    blocker.write_text("not a directory")
    store = FilesystemAttachmentStore(orders, root=blocker)
    with pytest.raises(PersistenceError):
        store.put(order_id, 0, 0, _pdf())


def test_store_records_upload_row(orders, order_id):
    recorded = []

    class Recorder:
        def record(self, upload):
            recorded.append(upload)
            return upload

    store = InMemoryAttachmentStore(orders, uploads=Recorder())
    up = store.store(order_id, 1, 2, _pdf())
    assert recorded == [up]
    assert up.storage_address == f"{order_id}/s1_f2_report.pdf"
    assert up.size == 4
    assert up.mime_type == "application/pdf"


def test_empty_file_is_a_valid_attachment(tmp_path, orders, order_id):
    empty = Attachment(name="empty.txt", mime_type="text/plain", data=b"")

    fs = FilesystemAttachmentStore(orders, root=tmp_path)
    assert fs.put(order_id, 0, 0, empty) == f"/media/uploads/{order_id}/s0_f0_empty.txt"
    assert (tmp_path / order_id / "s0_f0_empty.txt").read_bytes() == b""

    mem = InMemoryAttachmentStore(orders)
    assert mem.put(order_id, 0, 0, empty) == f"memory://{order_id}/s0_f0_empty.txt"
