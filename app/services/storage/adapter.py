from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict


class StorageError(RuntimeError):
    """The backing store rejected or failed an operation."""


@dataclass
class StoredObject:
    object_key: str
    url: str
    size_bytes: int
    public_id: str | None = None


def resource_type_for(content_type: str | None) -> str:
    return "image" if (content_type or "").startswith("image/") else "raw"


class StorageAdapter(ABC):
    provider: str = "local"

    @abstractmethod
    def save(self, object_key: str, content: bytes, content_type: str) -> StoredObject:
        pass

    @abstractmethod
    def move(self, object_key: str, dest_key: str, content_type: str | None = None) -> StoredObject:
        pass

    @abstractmethod
    def generate_download_url(
        self, object_key: str, expires_in: int = 3600, content_type: str | None = None
    ) -> str:
        pass

    @abstractmethod
    def delete_object(self, object_key: str, content_type: str | None = None):
        pass

    @abstractmethod
    def object_exists(self, object_key: str) -> bool:
        pass

    def sign_params(self, params: Dict[str, Any]) -> Dict[str, str]:
        raise StorageError(f"{self.provider} storage does not sign client uploads")


class LocalFileSystemAdapter(StorageAdapter):
    def __init__(self, base_path: str, base_url: str):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.provider = "local"
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve_safe_path(self, object_key: str) -> Path:
        if "\\" in object_key:
            raise ValueError("Invalid object key")
        key_path = PurePosixPath(object_key)
        if key_path.is_absolute() or ".." in key_path.parts:
            raise ValueError("Invalid object key")
        base = self.base_path.resolve()
        resolved = (base / Path(object_key)).resolve()
        if resolved != base and base not in resolved.parents:
            raise ValueError("Invalid object key")
        return resolved

    def resolve_path(self, object_key: str) -> Path:
        return self._resolve_safe_path(object_key)

    def _public_url(self, object_key: str) -> str:
        return f"{self.base_url}/uploads/{object_key}"

    def save(self, object_key: str, content: bytes, content_type: str) -> StoredObject:
        path = self._resolve_safe_path(object_key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as exc:
            raise StorageError(f"Could not write {object_key}") from exc
        return StoredObject(
            object_key=object_key, url=self._public_url(object_key), size_bytes=len(content)
        )

    def move(self, object_key: str, dest_key: str, content_type: str | None = None) -> StoredObject:
        source = self._resolve_safe_path(object_key)
        target = self._resolve_safe_path(dest_key)
        if not source.is_file():
            raise StorageError(f"Object {object_key} does not exist")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            source.replace(target)
        except OSError as exc:
            raise StorageError(f"Could not move {object_key}") from exc
        return StoredObject(
            object_key=dest_key, url=self._public_url(dest_key), size_bytes=target.stat().st_size
        )

    def generate_download_url(
        self, object_key: str, expires_in: int = 3600, content_type: str | None = None
    ) -> str:
        return self._public_url(object_key)

    def delete_object(self, object_key: str, content_type: str | None = None):
        path = self._resolve_safe_path(object_key)
        if path.exists():
            path.unlink()

    def object_exists(self, object_key: str) -> bool:
        try:
            path = self._resolve_safe_path(object_key)
        except ValueError:
            return False
        return path.is_file()


class CloudinaryStorageAdapter(StorageAdapter):
    """Media CDN backend. Object keys double as Cloudinary public ids.

    Images are stored without their extension (Cloudinary derives the format);
    raw files keep it so downloads retain the original name.
    """

    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        # Lazy import to avoid requiring dependency unless used
        import cloudinary

        if not (cloud_name and api_key and api_secret):
            raise ValueError("Cloudinary credentials are not configured")
        self.provider = "cloudinary"
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        cloudinary.config(
            cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True
        )

    @staticmethod
    def _public_id(object_key: str, content_type: str | None) -> str:
        if resource_type_for(content_type) == "image":
            return str(PurePosixPath(object_key).with_suffix(""))
        return object_key

    def save(self, object_key: str, content: bytes, content_type: str) -> StoredObject:
        import cloudinary.exceptions
        import cloudinary.uploader

        try:
            result = cloudinary.uploader.upload(
                content,
                public_id=self._public_id(object_key, content_type),
                resource_type=resource_type_for(content_type),
                use_filename=False,
                unique_filename=False,
                overwrite=False,
            )
        except cloudinary.exceptions.Error as exc:
            raise StorageError(f"Cloudinary upload failed for {object_key}: {exc}") from exc
        return StoredObject(
            object_key=result["public_id"],
            url=result["secure_url"],
            size_bytes=int(result.get("bytes") or len(content)),
            public_id=result["public_id"],
        )

    def move(self, object_key: str, dest_key: str, content_type: str | None = None) -> StoredObject:
        import cloudinary.exceptions
        import cloudinary.uploader

        try:
            result = cloudinary.uploader.rename(
                object_key,
                self._public_id(dest_key, content_type),
                resource_type=resource_type_for(content_type),
            )
        except cloudinary.exceptions.Error as exc:
            raise StorageError(f"Cloudinary rename failed for {object_key}: {exc}") from exc
        return StoredObject(
            object_key=result["public_id"],
            url=result["secure_url"],
            size_bytes=int(result.get("bytes") or 0),
            public_id=result["public_id"],
        )

    def generate_download_url(
        self, object_key: str, expires_in: int = 3600, content_type: str | None = None
    ) -> str:
        from cloudinary.utils import cloudinary_url

        url, _ = cloudinary_url(
            object_key,
            resource_type=resource_type_for(content_type),
            type="upload",
            sign_url=True,
            secure=True,
        )
        return url

    def delete_object(self, object_key: str, content_type: str | None = None):
        import cloudinary.exceptions
        import cloudinary.uploader

        try:
            cloudinary.uploader.destroy(object_key, resource_type=resource_type_for(content_type))
        except cloudinary.exceptions.Error as exc:
            raise StorageError(f"Cloudinary delete failed for {object_key}: {exc}") from exc

    def object_exists(self, object_key: str) -> bool:
        # Cloudinary references are registered by the client after upload
        return True

    def sign_params(self, params: Dict[str, Any]) -> Dict[str, str]:
        from cloudinary.utils import api_sign_request

        return {
            "signature": api_sign_request(params, self.api_secret),
            "api_key": self.api_key,
            "cloud_name": self.cloud_name,
        }
