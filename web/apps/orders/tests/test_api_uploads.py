"""API tests for the multipart attachment upload endpoint."""

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from apps.orders.models import AttachmentUploadModel

CREATE_URL = "/api/orders/"
UPLOAD_URL = "/api/uploads/"


@pytest.fixture
def order_id(client, order_payload):
    r = client.post(CREATE_URL, data=order_payload, content_type="application/json")
    assert r.status_code == 201
    return r.json()["id"]


def _upload(client, order_id, s="0", f="0", name="report.pdf", data=b"%PDF-1.4"):
    form = {"orderId": order_id, "sectionIdx": s, "fileIdx": f}
    if name is not None:
        form["file"] = SimpleUploadedFile(name, data, content_type="application/pdf")
    return client.post(UPLOAD_URL, data=form)


@pytest.mark.django_db
def test_upload_stores_file_and_returns_reference(client, order_id, settings):
    r = _upload(client, order_id, s="1", f="0", name="report (1).pdf")
    assert r.status_code == 201, r.content
    body = r.json()
    assert body["order_id"] == order_id
    assert (body["section_index"], body["file_index"]) == (1, 0)
    assert body["original_file_name"] == "report (1).pdf"
    assert body["address"] == f"{order_id}/s1_f0_report__1_.pdf"
    assert body["stored_reference"] == f"/media/uploads/{order_id}/s1_f0_report__1_.pdf"

    stored = settings.MEDIA_ROOT / "uploads" / order_id / "s1_f0_report__1_.pdf"
    assert stored.read_bytes() == b"%PDF-1.4"
    row = AttachmentUploadModel.objects.get(order_id=order_id)
    assert row.size == 8 and row.mime_type == "application/pdf"


@pytest.mark.django_db
def test_upload_malformed_order_id_is_400_and_writes_nothing(client, settings):
    r = _upload(client, "not-a-real-id")
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_ORDER_ID"
    assert not (settings.MEDIA_ROOT / "uploads").exists()


@pytest.mark.django_db
def test_upload_unknown_order_is_404(client):
    r = _upload(client, "1b4e28ba-2fa1-41d2-883f-0016d3cca427")
    assert r.status_code == 404
    assert r.json()["detail"] == "UNKNOWN_ORDER_ID"


@pytest.mark.django_db
@pytest.mark.parametrize("s,f", [("-1", "0"), ("0", "x"), ("0", "1.5")])
def test_upload_bad_coordinate_is_400(client, order_id, s, f):
    r = _upload(client, order_id, s=s, f=f)
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_COORDINATE"
    assert AttachmentUploadModel.objects.count() == 0


@pytest.mark.django_db
def test_upload_without_file_is_400(client, order_id):
    r = _upload(client, order_id, name=None)
    assert r.status_code == 400
    assert r.json()["detail"] == "MISSING_FILE"


@pytest.mark.django_db
def test_reupload_same_name_overwrites_and_detail_shows_latest(client, order_id, settings):
    _upload(client, order_id, data=b"v1")
    _upload(client, order_id, data=b"v2")
    _upload(client, order_id, name="other.pdf", data=b"o")

    slot_dir = settings.MEDIA_ROOT / "uploads" / order_id
    assert sorted(p.name for p in slot_dir.iterdir()) == ["s0_f0_other.pdf", "s0_f0_report.pdf"]
    assert (slot_dir / "s0_f0_report.pdf").read_bytes() == b"v2"

    detail = client.get(f"/api/orders/{order_id}/").json()
    assert [a["original_file_name"] for a in detail["attachments"]] == ["other.pdf"]


@pytest.mark.django_db
def test_upload_storage_failure_is_503(client, order_id, settings):
    settings.MEDIA_ROOT.mkdir(parents=True, exist_ok=True)
    (settings.MEDIA_ROOT / "uploads").write_text("in the way")
    r = _upload(client, order_id)
    assert r.status_code == 503
    assert r.json()["detail"] == "PERSISTENCE_ERROR"


@pytest.mark.django_db
def test_upload_against_filesystem_order_store(client, order_payload, settings):
    settings.ORDER_STORE_BACKEND = "filesystem"
    oid = client.post(CREATE_URL, data=order_payload, content_type="application/json").json()["id"]
    r = _upload(client, oid)
    assert r.status_code == 201
    # a UUID is not a valid id for this backend
    r = _upload(client, "1b4e28ba-2fa1-41d2-883f-0016d3cca427")
    assert r.json()["detail"] == "INVALID_ORDER_ID"


@pytest.mark.django_db
def test_upload_over_limit_returns_413(client, order_id, settings):
    settings.UPLOAD_MAX_BYTES = 100
    r = _upload(client, order_id, data=b"x" * 500)
    assert r.status_code == 413
