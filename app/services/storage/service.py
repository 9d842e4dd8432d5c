from app.core.settings import Settings, settings as default_settings
from app.services.storage.adapter import (
    CloudinaryStorageAdapter,
    LocalFileSystemAdapter,
    StorageAdapter,
)


def get_storage_adapter(config: Settings | None = None) -> StorageAdapter:
    config = config or default_settings
    if config.storage_provider == "cloudinary":
        return CloudinaryStorageAdapter(
            cloud_name=config.cloudinary_cloud_name,
            api_key=config.cloudinary_api_key,
            api_secret=config.cloudinary_api_secret,
        )
    return LocalFileSystemAdapter(
        base_path=config.local_upload_dir,
        base_url=config.public_base_url,
    )
