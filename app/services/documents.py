from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ServiceError
from app.core.roles import UserRole, check_role
from app.core.settings import settings
from app.models.document import Document
from app.models.loan_application import LoanApplication
from app.models.user import User
from app.services.storage.adapter import (
    LocalFileSystemAdapter,
    StorageAdapter,
    StorageError,
    StoredObject,
)
from app.services.storage.key_generator import KeyGenerator

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
DOCUMENT_MIME_TYPES = IMAGE_MIME_TYPES | {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

# Magic byte signatures used to cross-check the declared content type.
_MAGIC_SIGNATURES: dict[str, list[bytes]] = {
    "application/pdf": [b"%PDF"],
    "image/png": [b"\x89PNG\r\n\x1a\n"],
    "image/jpeg": [b"\xff\xd8\xff"],
    "image/jpg": [b"\xff\xd8\xff"],
    "image/webp": [b"RIFF"],
    "application/msword": [b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"],
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": [
        b"PK\x03\x04",
        b"PK\x05\x06",
    ],
}

_READ_CHUNK = 1024 * 1024


class DocumentError(ServiceError):
    """Upload, association or download refused."""


def allowed_mime_types(document_type: str | None) -> set[str]:
    if document_type == "SELFIE":
        return IMAGE_MIME_TYPES
    return DOCUMENT_MIME_TYPES


def validate_upload(
    *, document_type: str | None, mime_type: str | None, size: int, header: bytes
) -> None:
    if size <= 0:
        raise DocumentError(code="empty_file", message="Uploaded file is empty")
    limit = settings.max_upload_size_bytes
    if size > limit:
        raise DocumentError(
            code="file_too_large",
            message=f"File exceeds maximum allowed size of {settings.max_upload_size_mb} MB",
            details={"max_bytes": limit},
        )
    mime = (mime_type or "").lower()
    allowed = allowed_mime_types(document_type)
    if mime not in allowed:
        raise DocumentError(
            code="invalid_file_type",
            message="File type not allowed",
            details={"allowed": sorted(allowed)},
        )
    signatures = _MAGIC_SIGNATURES.get(mime)
    if signatures and not any(header.startswith(sig) for sig in signatures):
        raise DocumentError(
            code="content_mismatch",
            message="File content does not match the declared file type",
        )


async def read_upload(file: UploadFile) -> bytes:
    """Read an upload into memory, stopping once the size limit is exceeded."""
    limit = settings.max_upload_size_bytes
    chunks: list[bytes] = []
    total = 0
    try:
        while True:
            chunk = await file.read(_READ_CHUNK)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise DocumentError(
                    code="file_too_large",
                    message=f"File exceeds maximum allowed size of {settings.max_upload_size_mb} MB",
                    details={"max_bytes": limit},
                )
            chunks.append(chunk)
    finally:
        await file.close()
    return b"".join(chunks)


def _safe_filename(filename: str | None, fallback: str = "upload.bin") -> str:
    if not filename:
        return fallback
    return Path(filename).name or fallback


async def get_application_by_human_id(
    db: AsyncSession, application_id: str, actor: User
) -> LoanApplication:
    """Look up an application the actor may attach documents to.

    Borrowers only see their own applications; admins see all of them.
    """
    result = await db.execute(
        select(LoanApplication).where(LoanApplication.application_id == application_id)
    )
    application = result.scalar_one_or_none()
    if application is None or not (
        application.user_id == actor.id or check_role(actor.role, UserRole.ADMIN)
    ):
        raise DocumentError(
            code="application_not_found",
            message="Loan application not found",
            status_code=404,
        )
    return application


async def upsert_document(
    db: AsyncSession,
    application: LoanApplication,
    *,
    document_type: str,
    file_name: str,
    file_path: str,
    file_size: int | None,
    mime_type: str | None,
    storage_provider: str,
    external_public_id: str | None = None,
) -> Document:
    """Keep exactly one Document per (application, type); newer metadata wins."""
    application_pk = application.id
    human_id = application.application_id
    values = {
        "file_name": file_name,
        "file_path": file_path,
        "file_size": file_size,
        "mime_type": mime_type,
        "storage_provider": storage_provider,
        "external_public_id": external_public_id,
        "uploaded_at": datetime.now(timezone.utc),
    }
    for attempt in range(2):
        result = await db.execute(
            select(Document).where(
                Document.loan_application_id == application_pk,
                Document.document_type == document_type,
            )
        )
        document = result.scalar_one_or_none()
        if document is None:
            document = Document(
                loan_application_id=application_pk, document_type=document_type, **values
            )
        else:
            for key, value in values.items():
                setattr(document, key, value)
        db.add(document)
        try:
            await db.commit()
        except IntegrityError:
            # a concurrent first upload of the same type won the insert
            await db.rollback()
            if attempt:
                raise
            continue
        logger.info("Stored %s document for application %s", document_type, human_id)
        return document
    raise RuntimeError("unreachable")


async def _store(
    storage: StorageAdapter, object_key: str, content: bytes, content_type: str
) -> StoredObject:
    try:
        return await run_in_threadpool(storage.save, object_key, content, content_type)
    except StorageError as exc:
        logger.exception("Storage upload failed for %s", object_key)
        raise DocumentError(
            code="upload_failed",
            message="Failed to upload file. Please try again later.",
            status_code=500,
        ) from exc


async def upload(
    db: AsyncSession,
    storage: StorageAdapter,
    file: UploadFile,
    *,
    actor: User,
    application_id: str | None,
    document_type: str | None,
) -> tuple[StoredObject, Document | None]:
    """Store an uploaded file; without an application it lands in the temp folder."""
    content = await read_upload(file)
    mime_type = (file.content_type or "").lower()
    validate_upload(
        document_type=document_type, mime_type=mime_type, size=len(content), header=content[:16]
    )
    file_name = _safe_filename(file.filename)

    application = None
    if application_id:
        if not document_type:
            raise DocumentError(code="document_type_required", message="documentType is required")
        application = await get_application_by_human_id(db, application_id, actor)

    key_type = document_type if application is not None else None
    object_key = KeyGenerator.generate_object_key(
        settings.cloudinary_root_folder, key_type, file_name
    )
    stored = await _store(storage, object_key, content, mime_type)
    if application is None:
        return stored, None

    document = await upsert_document(
        db,
        application,
        document_type=document_type,
        file_name=file_name,
        file_path=stored.object_key,
        file_size=stored.size_bytes,
        mime_type=mime_type,
        storage_provider=storage.provider,
        external_public_id=stored.public_id,
    )
    return stored, document


async def associate_external(
    db: AsyncSession,
    *,
    actor: User,
    application_id: str,
    document_type: str,
    external_url: str,
    external_public_id: str | None,
    file_name: str,
    file_size: int | None,
    mime_type: str | None,
) -> Document:
    """Register a file the client uploaded straight to the CDN."""
    application = await get_application_by_human_id(db, application_id, actor)
    return await upsert_document(
        db,
        application,
        document_type=document_type,
        file_name=_safe_filename(file_name),
        file_path=external_url,
        file_size=file_size,
        mime_type=mime_type,
        storage_provider="cloudinary",
        external_public_id=external_public_id,
    )


async def associate_temp(
    db: AsyncSession,
    storage: StorageAdapter,
    *,
    actor: User,
    application_id: str,
    temp_file_path: str,
    document_type: str,
    file_name: str,
    file_size: int | None,
    mime_type: str | None,
) -> Document:
    """Promote a temp upload into the application's document folder."""
    root = settings.cloudinary_root_folder
    if not KeyGenerator.is_temp_key(root, temp_file_path):
        raise DocumentError(code="invalid_temp_path", message="Not a temporary upload path")
    application = await get_application_by_human_id(db, application_id, actor)
    dest_key = KeyGenerator.relocate(root, temp_file_path, document_type)
    try:
        stored = await run_in_threadpool(storage.move, temp_file_path, dest_key, mime_type)
    except (StorageError, ValueError) as exc:
        logger.warning("Could not move temp upload %s: %s", temp_file_path, exc)
        raise DocumentError(
            code="temp_file_missing",
            message="Temporary file not found",
            status_code=404,
        ) from exc
    return await upsert_document(
        db,
        application,
        document_type=document_type,
        file_name=_safe_filename(file_name),
        file_path=stored.object_key,
        file_size=file_size or stored.size_bytes or None,
        mime_type=mime_type,
        storage_provider=storage.provider,
        external_public_id=stored.public_id,
    )


@dataclass
class DownloadTarget:
    document: Document
    local_path: Path | None = None
    redirect_url: str | None = None


async def resolve_download(
    db: AsyncSession, storage: StorageAdapter, document_id
) -> DownloadTarget:
    document = await db.get(Document, document_id)
    if document is None:
        raise DocumentError(code="document_not_found", message="Document not found", status_code=404)

    if document.file_path.startswith(("http://", "https://")):
        return DownloadTarget(document=document, redirect_url=document.file_path)

    if document.storage_provider == "local":
        if not isinstance(storage, LocalFileSystemAdapter) or not storage.object_exists(
            document.file_path
        ):
            raise DocumentError(
                code="file_not_found", message="File not found on server", status_code=404
            )
        return DownloadTarget(document=document, local_path=storage.resolve_path(document.file_path))

    url = storage.generate_download_url(
        document.external_public_id or document.file_path,
        expires_in=settings.signed_url_expiry_seconds,
        content_type=document.mime_type,
    )
    return DownloadTarget(document=document, redirect_url=url)
