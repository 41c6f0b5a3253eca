"""Root pytest configuration for manifest-service tests."""
import pytest

from manifest_service.repository import RepositoryContext
from manifest_service.service import ManifestService
from manifest_service.settings import Settings

from tests.catalog.fakes import FakeCatalog
from tests.storage.fakes import FakeContentStore

REGISTRY_ADDR = "registry.example.com:5000"


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Automatically set up test environment variables."""
    monkeypatch.setenv("MANIFEST_SERVICE_REGISTRY_URL", "http://localhost:5000")
    monkeypatch.setenv("MANIFEST_SERVICE_CATALOG_URL", "http://localhost:8443")
    monkeypatch.setenv("MANIFEST_SERVICE_REGISTRY_ADDR", REGISTRY_ADDR)


@pytest.fixture
def settings():
    """Standard test settings."""
    return Settings(
        registry_url="http://localhost:5000",
        catalog_url="http://localhost:8443",
        registry_addr=REGISTRY_ADDR,
        registry_insecure=True,
    )


@pytest.fixture
def content_store():
    return FakeContentStore()


@pytest.fixture
def catalog():
    """Catalog in which team-a/web's image collection already exists."""
    return FakeCatalog(collections={("team-a", "web")})


@pytest.fixture
def user_catalog(catalog):
    return catalog.acting_as_user()


@pytest.fixture
def ctx():
    return RepositoryContext(namespace="team-a", name="web", registry_addr=REGISTRY_ADDR)


@pytest.fixture
def service(ctx, content_store, catalog, user_catalog):
    return ManifestService(ctx, content_store, catalog, user_catalog=user_catalog)
