"""Shared fixtures for the catalog tests."""

import pytest

from artifactory_client import ArtifactoryCredentials, ArtifactoryManager
from catalog_service import CatalogService
from catalog_store import CatalogStore
from mock_data import MockArtifactory


@pytest.fixture
def store(tmp_path):
    catalog = CatalogStore(tmp_path / "artifacts.db")
    catalog.ensure_schema()
    yield catalog
    catalog.close()


@pytest.fixture
def credentials():
    return ArtifactoryCredentials(username="deployer", api_key="AKCp8secretkey")


@pytest.fixture
def mock_artifactory():
    return MockArtifactory(username="deployer", api_key="AKCp8secretkey")


@pytest.fixture
def manager(mock_artifactory):
    return ArtifactoryManager(transport=mock_artifactory.transport())


@pytest.fixture
def service(store, manager):
    catalog_service = CatalogService(store, manager)
    catalog_service.start()
    return catalog_service
