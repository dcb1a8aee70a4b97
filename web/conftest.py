import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def use_local_stores(settings, tmp_path):
    settings.USE_HTTP_ADAPTERS = False
    settings.ORDER_STORE_BACKEND = "database"
    settings.ATTACHMENT_BACKEND = "filesystem"
    settings.MEDIA_ROOT = tmp_path / "media"
    settings.MEDIA_URL = "/media/"
    settings.ORDERS_DATA_DIR = tmp_path / "data"


@pytest.fixture(autouse=True)
def reset_throttles_and_breakers():
    # throttle counters live in the locmem cache
    cache.clear()
    from apps.orders.http_adapters import _blobs_cb, _orders_api_cb
    _orders_api_cb.on_success()
    _blobs_cb.on_success()
    yield
    cache.clear()


@pytest.fixture
def order_payload():
    return {
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "tagline": "Analyst",
        "linkedin": "https://linkedin.com/in/ada",
        "contactNumber": "+44 20 0000 0000",
        "about": "First programmer.",
        "skills": ["math", "poetry"],
        "sections": [
            {"title": "Work", "description": "", "files": [{"title": "Notes", "topic": "engine", "description": "G"}]},
            {"title": "Talks", "description": "", "files": [{"title": "Slides", "topic": "", "description": ""}]},
        ],
        "colorCodes": ["#FFFFFF", "#cfd2d6"],
        "hostingOption": "need_help",
        "otherComments": "",
    }
