"""Browser tests need the application; skip them cleanly when it is down."""
import httpx
import pytest

from portal_e2e.config import settings


@pytest.fixture(scope="session")
def app_available() -> bool:
    try:
        httpx.get(settings.base_url, timeout=2.0, follow_redirects=True)
    except httpx.HTTPError:
        return False
    return True


@pytest.fixture(autouse=True)
def require_app(app_available):
    if not app_available:
        pytest.skip(f"Application not reachable at {settings.base_url} - start it or set BASE_URL")
