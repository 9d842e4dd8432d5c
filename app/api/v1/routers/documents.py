from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models.user import User
from app.schemas.documents import (
    AssociateExternalRequest,
    AssociateTempRequest,
    DocumentResponse,
    DocumentType,
    SignParamsRequest,
    SignParamsResponse,
    UploadResponse,
)
from app.schemas.loan import DocumentOut
from app.services import documents as document_service
from app.services.storage.adapter import StorageAdapter, StorageError

router = APIRouter(tags=["documents"])


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a supporting document",
)
async def upload_document(
    file: UploadFile = File(...),
    application_id: str | None = Form(default=None, alias="applicationId"),
    document_type: DocumentType | None = Form(default=None, alias="documentType"),
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageAdapter = Depends(deps.get_document_storage),
) -> UploadResponse:
    stored, document = await document_service.upload(
        db,
        storage,
        file,
        actor=current_user,
        application_id=application_id or None,
        document_type=document_type.value if document_type else None,
    )

    return UploadResponse(
        message="File uploaded successfully" if document else "File uploaded temporarily",
        file_name=document.file_name if document else (file.filename or stored.object_key),
        file_path=stored.object_key,
        public_url=stored.url,
        file_size=stored.size_bytes,
        mime_type=(file.content_type or "").lower(),
        document=DocumentOut.model_validate(document) if document else None,
    )


@router.post(
    "/upload/associate",
    response_model=DocumentResponse,
    summary="Attach a temporary upload to an application",
)
async def associate_temp_upload(
    payload: AssociateTempRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageAdapter = Depends(deps.get_document_storage),
) -> DocumentResponse:
    document = await document_service.associate_temp(
        db,
        storage,
        actor=current_user,
        application_id=payload.application_id,
        temp_file_path=payload.temp_file_path,
        document_type=payload.document_type,
        file_name=payload.file_name,
        file_size=payload.file_size,
        mime_type=payload.mime_type,
    )
    return DocumentResponse(
        message="Document associated successfully", document=DocumentOut.model_validate(document)
    )


@router.post(
    "/documents/associate",
    response_model=DocumentResponse,
    summary="Register a document uploaded directly to the media CDN",
)
async def associate_external_document(
    payload: AssociateExternalRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DocumentResponse:
    document = await document_service.associate_external(
        db,
        actor=current_user,
        application_id=payload.application_id,
        document_type=payload.document_type,
        external_url=payload.external_url,
        external_public_id=payload.external_public_id,
        file_name=payload.file_name,
        file_size=payload.file_size,
        mime_type=payload.mime_type,
    )
    return DocumentResponse(
        message="Document associated successfully", document=DocumentOut.model_validate(document)
    )


@router.get("/documents/download", summary="Download a document")
async def download_document(
    document_id: UUID = Query(..., alias="documentId"),
    _: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
    storage: StorageAdapter = Depends(deps.get_document_storage),
):
    target = await document_service.resolve_download(db, storage, document_id)

    if target.redirect_url:
        return RedirectResponse(target.redirect_url, status_code=status.HTTP_302_FOUND)
    document = target.document
    return FileResponse(
        target.local_path,
        filename=document.file_name,
        media_type=document.mime_type or "application/octet-stream",
    )


@router.post(
    "/sign-cloudinary-params",
    response_model=SignParamsResponse,
    summary="Sign parameters for a direct client upload",
)
async def sign_cloudinary_params(
    payload: SignParamsRequest,
    _: User = Depends(deps.get_current_user),
    storage: StorageAdapter = Depends(deps.get_document_storage),
) -> SignParamsResponse:
    if not payload.params_to_sign:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "missing_params", "message": "Missing paramsToSign"},
        )
    try:
        signed = await run_in_threadpool(storage.sign_params, payload.params_to_sign)
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "signing_unavailable", "message": str(exc)},
        ) from exc
    return SignParamsResponse(**signed)
