"""Integration tests that assert created orders are persisted.

These tests use Django's test client and direct DB assertions to validate
that the HTTP API stores an attachment-free order row.
"""

import json

import pytest
from uuid import UUID
from django.db import connection

CREATE_URL = "/api/orders/"


@pytest.mark.django_db
def test_create_persists_order_row_with_uuid_pk(client, order_payload):
    # client-side fields must never reach the record
    order_payload["sections"][0]["files"][0]["attachment"] = {"name": "cv.pdf"}
    order_payload["sections"][0]["files"][0]["uploadedStoredName"] = "/media/uploads/x"

    r = client.post(CREATE_URL, data=order_payload, content_type="application/json")
    assert r.status_code == 201
    oid = r.json()["id"]
    UUID(oid)

    with connection.cursor() as cur:
        cur.execute("select name, email, hosting_option, snapshot from orders where id = %s", [UUID(oid).hex])
        row = cur.fetchone()
    assert row is not None
    name, email, hosting, snapshot = row
    assert (name, email, hosting) == ("Ada Lovelace", "ada@example.com", "need_help")

    snap = json.loads(snapshot) if isinstance(snapshot, str) else snapshot
    assert snap["color_codes"] == ["#ffffff", "#cfd2d6"]
    assert snap["sections"][0]["files"][0] == {"title": "Notes", "topic": "engine", "description": "G"}
    assert "attachment" not in json.dumps(snap)
