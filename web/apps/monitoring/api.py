import os
from pathlib import Path

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse


def _storage_dirs() -> list[Path]:
    dirs = []
    if getattr(settings, "ATTACHMENT_BACKEND", "filesystem") == "filesystem":
        dirs.append(Path(settings.MEDIA_ROOT))
    if getattr(settings, "ORDER_STORE_BACKEND", "database") == "filesystem":
        dirs.append(Path(settings.ORDERS_DATA_DIR))
    return dirs


def _writable(path: Path) -> bool:
    return os.access(path, os.W_OK)


def health_view(_request):
    db_ok = False
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
        db_ok = True
    except DatabaseError:
        db_ok = False

    # a missing directory is fine as long as it can be created
    storage_ok = True
    for d in _storage_dirs():
        probe = d if d.exists() else d.parent
        if not _writable(probe):
            storage_ok = False

    ok = db_ok and storage_ok
    code = 200 if ok else 503
    return JsonResponse(
        {"ok": ok, "components": {"db": {"ok": db_ok}, "storage": {"ok": storage_ok}}},
        status=code,
    )
