"""Idempotency keys for ``POST /api/orders/``.

A submitter that times out while creating an order retries with the same
``Idempotency-Key`` header; the stored response is replayed instead of a
second order being created. Reusing a key with a different draft is a
conflict. A key whose request hit a storage fault is released so the retry
runs for real.
"""

import hashlib, json
from django.db import transaction, IntegrityError
from .models import IdempotencyKey


def _hash(payload: dict) -> str:
    """SHA-256 over the canonical JSON form (sorted keys, compact separators)."""
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


@transaction.atomic
def get_or_create_idempotent(key: str, payload: dict):
    """Reserve ``key`` for ``payload`` or find the earlier reservation.

    Args:
        key: Value of the ``Idempotency-Key`` header.
        payload: Parsed request body.

    Returns:
        tuple[bool, IdempotencyKey]: ``(False, rec)`` for a fresh key,
        ``(True, rec)`` for a retry whose stored response should be replayed.

    Raises:
        ValueError: ``IDEMPOTENCY_CONFLICT`` when the key was used for a
            different body.
    """
    h = _hash(payload)

    try:
        # savepoint: a duplicate key only rolls back this block
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(
                key=key, request_hash=h, response_status=0, response_body={}
            )
            return False, rec
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(key=key)
        if rec.request_hash != h:
            raise ValueError("IDEMPOTENCY_CONFLICT")
        return True, rec


def finalize(rec: IdempotencyKey, status_code: int, body: dict, order_id=None):
    """Store the response to replay, plus the created order id."""
    rec.response_status = status_code
    rec.response_body = body
    if order_id is not None:
        rec.order_id = str(order_id)
    rec.save(update_fields=["response_status", "response_body", "order_id"])


def release(rec: IdempotencyKey):
    """Drop a record whose request hit a transient failure so a retry runs again."""
    rec.delete()
