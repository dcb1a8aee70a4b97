"""Blob service API built with FastAPI.

Stores attachment bytes under their storage address
(``<order_id>/s<section>_f<file>_<safe_name>``). The gateway's
``BlobServiceAttachmentStore`` PUTs each upload here; clients fetch the bytes
back with GET on the same path. Persistence is delegated to the
SQLAlchemy-backed repository in ``repo.BlobRepo``.
"""

import re
import time
import uuid
import logging
from typing import Annotated, Optional
from urllib.parse import unquote

from fastapi import FastAPI, HTTPException, Header, Request, Response
from pydantic import BaseModel
from pythonjsonlogger import jsonlogger
from sqlalchemy import text

from repo import BlobRepo, engine, init_db

app = FastAPI(title="Blob Service")

ADDRESS_RE = re.compile(r"[A-Za-z0-9_-]{1,64}/s[0-9]+_f[0-9]+_[A-Za-z0-9._-]{1,150}")

logger = logging.getLogger("blobs")
if not logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    logger.addHandler(h)
    logger.setLevel(logging.INFO)


@app.on_event("startup")
def _startup_db():
    # wait briefly until the DB accepts connections
    deadline = time.time() + 30
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            break
        except Exception:
            if time.time() > deadline:
                raise
            time.sleep(1)
    init_db()


class PutBlobResponse(BaseModel):
    """Response body for a successful PUT.

    Attributes:
        address: The storage address written.
        size: Number of bytes stored.
        created: False when an existing blob was replaced.
    """
    address: str
    size: int
    created: bool


def _check_address(address: str) -> None:
    if not ADDRESS_RE.fullmatch(address):
        raise HTTPException(status_code=400, detail="INVALID_ADDRESS")


@app.get("/health")
def health():
    """Liveness/health probe endpoint."""
    return {"ok": True}


@app.put("/blobs/{address:path}", response_model=PutBlobResponse)
async def put_blob(
    address: str,
    request: Request,
    response: Response,
    content_type: Annotated[Optional[str], Header()] = None,
    x_file_name: Annotated[Optional[str], Header()] = None,
):
    """Create or replace the blob stored at ``address``.

    Returns 201 when the address is new and 200 when it was overwritten.
    A zero-byte body is a valid blob.

    Raises:
        HTTPException: 400 ``INVALID_ADDRESS`` for malformed addresses.
    """
    _check_address(address)
    data = await request.body()
    created = BlobRepo().put(
        address,
        data,
        content_type=content_type or "application/octet-stream",
        file_name=unquote(x_file_name or ""),
    )
    response.status_code = 201 if created else 200
    logger.info(
        "blob stored",
        extra={"request_id": request.state.request_id, "address": address, "size": len(data), "new_blob": created},
    )
    return PutBlobResponse(address=address, size=len(data), created=created)


@app.get("/blobs/{address:path}")
def get_blob(address: str):
    """Return the raw bytes stored at ``address`` with their content type."""
    _check_address(address)
    blob = BlobRepo().get(address)
    if blob is None:
        raise HTTPException(status_code=404, detail="NOT_FOUND")
    return Response(content=blob.data, media_type=blob.content_type)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"request_id": rid, "path": request.url.path, "method": request.method})
    response.headers["X-Request-ID"] = rid
    return response
