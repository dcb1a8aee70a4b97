import os
import sys
from pathlib import Path

import pytest

SERVICE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(SERVICE_DIR))
os.environ.setdefault("BLOBS_DATABASE_URL", "sqlite:///" + str(SERVICE_DIR / "test_blobs.sqlite3"))


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    import repo
    from main import app

    repo.Base.metadata.drop_all(repo.engine)
    repo.init_db()
    with TestClient(app) as c:
        yield c
    repo.Base.metadata.drop_all(repo.engine)
