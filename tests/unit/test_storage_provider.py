"""
Unit tests for Storage Provider.
"""

import shutil
import tempfile
from pathlib import Path

import pytest

from parley.core.exceptions import StorageError
from parley.infrastructure.local.storage_provider import LocalStorageProvider


@pytest.fixture
def temp_storage():
    """Create temporary storage directory."""
    temp_dir = tempfile.mkdtemp()
    provider = LocalStorageProvider(base_path=temp_dir)
    yield provider
    # Cleanup
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.mark.asyncio
async def test_upload_file(temp_storage):
    """Test uploading a file."""
    data = b"Hello, World!"
    path = "1700000000000-abc.txt"

    location = await temp_storage.upload(path, data, content_type="text/plain")

    assert Path(location).read_bytes() == data
    assert await temp_storage.exists(path)


@pytest.mark.asyncio
async def test_exists_for_missing_file(temp_storage):
    """Test exists for missing file."""
    assert not await temp_storage.exists("missing.txt")


def test_public_url(temp_storage):
    """Test public url."""
    assert temp_storage.get_public_url("1-a.png") == "/uploads/1-a.png"


@pytest.mark.asyncio
async def test_upload_outside_base_path_is_rejected(temp_storage):
    """Test upload outside base path is rejected."""
    with pytest.raises(StorageError):
        await temp_storage.upload("../escape.txt", b"x")
