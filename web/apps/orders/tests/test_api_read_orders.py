import pytest
from datetime import timedelta
from uuid import uuid4

from django.utils import timezone

from apps.orders.domain import AttachmentUpload
from apps.orders.models import OrderRecordModel
from apps.orders.repository import AttachmentUploadRepository

DETAIL_URL = "/api/orders/{oid}/"
LIST_URL = "/api/orders/"


def _create(client, payload):
    r = client.post(LIST_URL, data=payload, content_type="application/json")
    assert r.status_code == 201
    return r.json()["id"]


@pytest.mark.django_db
def test_get_order_by_id_returns_200_and_payload(client, order_payload):
    oid = _create(client, order_payload)
    AttachmentUploadRepository().record(
        AttachmentUpload(
            order_id=oid, section_index=0, file_index=0, original_file_name="cv.pdf",
            storage_address=f"{oid}/s0_f0_cv.pdf", stored_reference=f"/media/uploads/{oid}/s0_f0_cv.pdf",
        )
    )

    r = client.get(DETAIL_URL.format(oid=oid))
    assert r.status_code == 200
    body = r.json()
    assert body["id"] == oid
    assert body["order"]["name"] == "Ada Lovelace"
    assert body["order"]["hostingOption"] == "need_help"
    assert body["order"]["colorCodes"] == ["#ffffff", "#cfd2d6"]
    assert body["attachments"][0]["stored_reference"] == f"/media/uploads/{oid}/s0_f0_cv.pdf"
    assert body["attachments"][0]["address"] == f"{oid}/s0_f0_cv.pdf"


@pytest.mark.django_db
def test_get_order_not_found_returns_404(client):
    r = client.get(DETAIL_URL.format(oid=str(uuid4())))
    assert r.status_code == 404
    assert r.json()["detail"] == "NOT_FOUND"

    r = client.get(DETAIL_URL.format(oid="not-a-real-id"))
    assert r.status_code == 404


@pytest.mark.django_db
def test_list_orders_returns_paginated_array(client, order_payload):
    first = _create(client, order_payload)
    OrderRecordModel.objects.filter(id=first).update(created_at=timezone.now() - timedelta(minutes=1))
    order_payload["name"] = "Grace Hopper"
    _create(client, order_payload)

    r = client.get(LIST_URL, {"page_size": 1})
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 2
    assert len(body["results"]) == 1
    assert body["results"][0]["name"] == "Grace Hopper"
    assert {"id", "name", "email", "created_at"} <= set(body["results"][0])


@pytest.mark.django_db
def test_list_orders_bad_page_returns_400(client):
    r = client.get(LIST_URL, {"page": "x"})
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_PAGE"


def test_ping(client):
    assert client.get("/api/orders/ping/").json() == {"ok": True}
