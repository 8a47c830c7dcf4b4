"""
Integration tests for the attachment upload endpoint.
"""

from parley.core.config import get_settings


def test_upload_and_download(client):
    """Test upload and download."""
    response = client.post("/upload", files={"file": ("notes.txt", b"hello", "text/plain")})

    assert response.status_code == 200
    body = response.json()
    assert body["reference"] == f"/uploads/{body['filename']}"
    assert body["filename"].endswith(".txt")
    assert body["originalName"] == "notes.txt"
    assert body["mimeType"] == "text/plain"
    assert body["size"] == 5

    download = client.get(body["reference"])
    assert download.status_code == 200
    assert download.content == b"hello"


def test_upload_image(client):
    """Test upload image."""
    response = client.post("/upload", files={"file": ("cat.png", b"\x89PNG", "image/png")})

    assert response.status_code == 200
    assert response.json()["mimeType"] == "image/png"


def test_upload_rejects_disallowed_type(client):
    """Test upload rejects disallowed type."""
    response = client.post(
        "/upload", files={"file": ("run.exe", b"MZ", "application/x-msdownload")}
    )

    assert response.status_code == 400


def test_upload_without_file(client):
    """Test upload without file."""
    response = client.post("/upload")

    assert response.status_code == 400


def test_upload_too_large(client, settings):
    """Test upload too large."""
    client.app.dependency_overrides[get_settings] = lambda: settings.model_copy(
        update={"UPLOAD_MAX_BYTES": 4}
    )
    try:
        response = client.post("/upload", files={"file": ("big.txt", b"0123456789", "text/plain")})
    finally:
        client.app.dependency_overrides.clear()

    assert response.status_code == 413
