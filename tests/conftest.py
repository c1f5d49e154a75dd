import shutil
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Test directories for isolated testing
TEST_DATA_DIR = Path("test_data").absolute()
TEST_UPLOAD_DIR = TEST_DATA_DIR / "uploads"
TEST_SHARE_FILE = TEST_DATA_DIR / "shares.json"

# Override config before the app is imported
import config
config.UPLOAD_DIR = str(TEST_UPLOAD_DIR)
config.SHARE_FILE = str(TEST_SHARE_FILE)
config.LOG_DIR = str(Path("test_logs").absolute())

from main import app, attach_services
from app.services.share_registry import ShareRegistry
from app.services.storage_manager import StorageManager
from monitor import Monitor


@pytest.fixture(autouse=True)
def setup_and_teardown():
    """Start every test from an empty data directory."""
    shutil.rmtree(TEST_DATA_DIR, ignore_errors=True)
    TEST_DATA_DIR.mkdir(parents=True, exist_ok=True)

    yield

    shutil.rmtree(TEST_DATA_DIR, ignore_errors=True)


@pytest.fixture
def data_dir():
    return TEST_DATA_DIR


@pytest.fixture
def upload_dir():
    return TEST_UPLOAD_DIR


@pytest.fixture
def share_file():
    return TEST_SHARE_FILE


@pytest.fixture
def client():
    # Fresh services per test; TestClient is not used as a context manager so lifespan does not run
    attach_services(app, TEST_UPLOAD_DIR, TEST_SHARE_FILE)
    return TestClient(app)


@pytest.fixture
def monitor():
    return Monitor(failure_threshold=3, window_seconds=60, alert_handler=lambda message: None)


@pytest_asyncio.fixture
async def storage_manager(monitor):
    manager = StorageManager(TEST_UPLOAD_DIR, monitor=monitor)
    await manager.initialize()
    return manager


@pytest_asyncio.fixture
async def share_registry(storage_manager, monitor):
    return ShareRegistry(TEST_SHARE_FILE, storage_manager, monitor=monitor)
