"""Global pytest configuration and fixtures."""

import sys
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ryos_backup._storage.kv_memory import MemoryFlatStorage, MemoryObjectStorage
from ryos_backup.config import BackupConfig
from tests.utils import populate


@pytest.fixture
def flat_storage():
    return MemoryFlatStorage(namespace="test")


@pytest.fixture
def object_storage():
    return MemoryObjectStorage(namespace="test")


@pytest.fixture
def temp_backup_dir():
    """Create temporary backup directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def backup_config(temp_backup_dir):
    return BackupConfig(backup_dir=str(temp_backup_dir), write_attempts=2)


@pytest_asyncio.fixture
async def populated_storage(flat_storage, object_storage):
    """Live storage holding one document, one image and a few settings."""
    return await populate(flat_storage, object_storage)
