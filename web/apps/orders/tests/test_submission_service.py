"""Unit tests for the SubmissionOrchestrator two-phase submission.

In-process stubs from ``apps.orders.adapters`` drive the outcomes; no
database, disk or network is touched.
"""

import pytest

from apps.orders.adapters import InMemoryAttachmentStore, InMemoryOrderStore
from apps.orders.domain import OrderSnapshot, SubmissionOrchestrator
from apps.orders.drafts import Attachment, OrderDraft
from apps.orders.errors import AttachmentFailed, MissingContact, OrderCreateFailed, PersistenceError


def _draft():
    d = OrderDraft()
    d.set_field("name", "Ada")
    d.set_field("email", "ada@example.com")
    d.update_section(0, title="Work")
    d.add_section()
    return d


def _file(name):
    return Attachment(name=name, mime_type="application/pdf", data=name.encode())


def _service(fail=False, fail_slots=()):
    orders = InMemoryOrderStore(fail=fail)
    attachments = InMemoryAttachmentStore(orders, fail_slots=fail_slots)
    return SubmissionOrchestrator(orders, attachments), orders, attachments


def test_submit_creates_order_then_uploads_in_slot_order():
    service, orders, attachments = _service()
    d = _draft()
    d.set_attachment(1, 0, _file("b.pdf"))
    d.set_attachment(0, 0, _file("a.pdf"))

    out = service.submit(d)

    assert out.order_id in orders.records
    assert attachments.calls == [(0, 0), (1, 0)]
    assert [(s, f) for s, f, _ in out.uploads] == [(0, 0), (1, 0)]
    assert d.file_at(0, 0).stored_reference == f"memory://{out.order_id}/s0_f0_a.pdf"
    assert d.file_at(1, 0).stored_reference == f"memory://{out.order_id}/s1_f0_b.pdf"


def test_order_record_never_contains_attachments():
    service, orders, _ = _service()
    d = _draft()
    d.set_attachment(0, 0, _file("a.pdf"))
    out = service.submit(d)
    snap = orders.records[out.order_id].snapshot
    assert isinstance(snap, OrderSnapshot)
    assert "attachment" not in str(snap.to_dict())
    assert "stored_reference" not in snap.to_dict()["sections"][0]["files"][0]


def test_submit_without_attachments_makes_no_uploads():
    service, _, attachments = _service()
    out = service.submit(_draft())
    assert out.uploads == []
    assert attachments.calls == []


def test_submit_requires_contact_and_sends_nothing():
    service, orders, attachments = _service()
    d = OrderDraft()
    d.set_attachment(0, 0, _file("a.pdf"))
    with pytest.raises(MissingContact) as e:
        service.submit(d)
    assert str(e.value) == "NAME_AND_EMAIL_REQUIRED"
    assert orders.records == {}
    assert attachments.calls == []


def test_create_failure_aborts_before_any_upload():
    service, _, attachments = _service(fail=True)
    d = _draft()
    d.set_attachment(0, 0, _file("a.pdf"))
    with pytest.raises(OrderCreateFailed) as e:
        service.submit(d)
    assert isinstance(e.value.cause, PersistenceError)
    assert attachments.calls == []
    assert d.file_at(0, 0).stored_reference is None


def test_partial_failure_keeps_order_and_earlier_references():
    service, orders, attachments = _service(fail_slots={(1, 0)})
    d = _draft()
    d.add_section()
    d.set_attachment(0, 0, _file("a.pdf"))
    d.set_attachment(1, 0, _file("b.pdf"))
    d.set_attachment(2, 0, _file("c.pdf"))

    with pytest.raises(AttachmentFailed) as e:
        service.submit(d)

    err = e.value
    assert err.order_id in orders.records
    assert (err.section_index, err.file_index) == (1, 0)
    assert d.file_at(0, 0).stored_reference is not None
    assert d.file_at(1, 0).stored_reference is None
    # later slots are not attempted
    assert attachments.calls == [(0, 0), (1, 0)]
    assert d.file_at(2, 0).stored_reference is None


def test_retry_slot_completes_partial_submission():
    service, _, attachments = _service(fail_slots={(0, 0)})
    d = _draft()
    d.set_attachment(0, 0, _file("a.pdf"))
    with pytest.raises(AttachmentFailed) as e:
        service.submit(d)

    attachments.fail_slots.clear()
    ref = service.retry_slot(e.value.order_id, d, 0, 0)
    assert ref == d.file_at(0, 0).stored_reference
    assert ref.endswith("/s0_f0_a.pdf")


def test_retry_slot_without_attachment_fails_with_missing_file():
    service, orders, _ = _service()
    out = service.submit(_draft())
    with pytest.raises(AttachmentFailed) as e:
        service.retry_slot(out.order_id, _draft(), 0, 0)
    assert e.value.cause.code == "MISSING_FILE"
