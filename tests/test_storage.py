import cloudinary.uploader
import pytest
from cloudinary.utils import api_sign_request

from app.core.settings import settings
from app.services.storage.adapter import (
    CloudinaryStorageAdapter,
    LocalFileSystemAdapter,
    StorageError,
    resource_type_for,
)
from app.services.storage.key_generator import KeyGenerator
from app.services.storage.service import get_storage_adapter


@pytest.fixture
def local(tmp_path):
    return LocalFileSystemAdapter(base_path=str(tmp_path), base_url="http://files.test/")


@pytest.fixture
def cdn():
    return CloudinaryStorageAdapter(cloud_name="demo", api_key="key-123", api_secret="shh")


def test_local_save_and_move(local):
    stored = local.save("litefi/temp/abc.pdf", b"%PDF-1.4", "application/pdf")
    assert stored.url == "http://files.test/uploads/litefi/temp/abc.pdf"
    assert stored.size_bytes == 8

    moved = local.move("litefi/temp/abc.pdf", "litefi/documents/abc.pdf")
    assert moved.object_key == "litefi/documents/abc.pdf"
    assert local.object_exists("litefi/documents/abc.pdf")
    assert not local.object_exists("litefi/temp/abc.pdf")


def test_local_move_of_missing_object_fails(local):
    with pytest.raises(StorageError):
        local.move("litefi/temp/nope.pdf", "litefi/documents/nope.pdf")


@pytest.mark.parametrize("key", ["../escape.pdf", "/etc/passwd", "litefi\\..\\x.pdf"])
def test_local_rejects_keys_outside_base(local, key):
    with pytest.raises(ValueError):
        local.save(key, b"x", "application/pdf")
    assert local.object_exists(key) is False


def test_local_has_no_upload_signing(local):
    with pytest.raises(StorageError):
        local.sign_params({"timestamp": 1})


def test_cloudinary_requires_credentials():
    with pytest.raises(ValueError):
        CloudinaryStorageAdapter(cloud_name="demo", api_key="", api_secret="shh")


def test_cloudinary_signs_params(cdn):
    params = {"timestamp": 1700000000, "folder": "litefi/temp"}

    signed = cdn.sign_params(params)

    assert signed == {
        "signature": api_sign_request(params, "shh"),
        "api_key": "key-123",
        "cloud_name": "demo",
    }


def test_cloudinary_image_public_id_drops_extension(cdn, monkeypatch):
    calls = []

    def fake_upload(content, **options):
        calls.append(options)
        return {
            "public_id": options["public_id"],
            "secure_url": f"https://res.cloudinary.com/demo/image/upload/{options['public_id']}.png",
            "bytes": len(content),
        }

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    stored = cdn.save("litefi/profiles/abc123.png", b"\x89PNG", "image/png")

    assert calls[0]["public_id"] == "litefi/profiles/abc123"
    assert calls[0]["resource_type"] == "image"
    assert stored.public_id == "litefi/profiles/abc123"
    assert stored.size_bytes == 4


def test_cloudinary_raw_files_keep_extension(cdn, monkeypatch):
    calls = []

    def fake_upload(content, **options):
        calls.append(options)
        return {"public_id": options["public_id"], "secure_url": "https://cdn/raw", "bytes": 3}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    cdn.save("litefi/documents/abc123.pdf", b"%PD", "application/pdf")

    assert calls[0]["public_id"] == "litefi/documents/abc123.pdf"
    assert calls[0]["resource_type"] == "raw"


def test_cloudinary_download_url_is_signed(cdn):
    url = cdn.generate_download_url("litefi/documents/abc123.pdf", content_type="application/pdf")

    assert url.startswith("https://res.cloudinary.com/demo/raw/upload/s--")
    assert url.endswith("litefi/documents/abc123.pdf")


def test_resource_type_for():
    assert resource_type_for("image/jpeg") == "image"
    assert resource_type_for("application/pdf") == "raw"
    assert resource_type_for(None) == "raw"


def test_factory_picks_backend(tmp_path):
    local_config = settings.model_copy(
        update={"storage_provider": "local", "local_upload_dir": str(tmp_path)}
    )
    assert isinstance(get_storage_adapter(local_config), LocalFileSystemAdapter)

    cdn_config = settings.model_copy(
        update={
            "storage_provider": "cloudinary",
            "cloudinary_cloud_name": "demo",
            "cloudinary_api_key": "key",
            "cloudinary_api_secret": "secret",
        }
    )
    assert isinstance(get_storage_adapter(cdn_config), CloudinaryStorageAdapter)


def test_temp_keys_relocate_by_document_type():
    temp_key = "litefi/temp/0123456789.pdf"

    assert KeyGenerator.is_temp_key("litefi", temp_key)
    assert KeyGenerator.relocate("litefi", temp_key, "CAC_CERTIFICATE") == (
        "litefi/documents/business/0123456789.pdf"
    )
    assert not KeyGenerator.is_temp_key("litefi", "litefi/documents/0123456789.pdf")
