from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, Field

from app.schemas.common import CamelModel
from app.schemas.loan import DocumentOut


class DocumentType(str, Enum):
    GOVERNMENT_ID = "GOVERNMENT_ID"
    UTILITY_BILL = "UTILITY_BILL"
    WORK_ID = "WORK_ID"
    CAC_CERTIFICATE = "CAC_CERTIFICATE"
    CAC_DOCUMENTS = "CAC_DOCUMENTS"
    SELFIE = "SELFIE"
    OTHER = "OTHER"


class UploadResponse(CamelModel):
    message: str
    file_name: str
    file_path: str
    public_url: str | None = None
    file_size: int
    mime_type: str
    document: DocumentOut | None = None


class AssociateExternalRequest(CamelModel):
    application_id: str = Field(min_length=1)
    document_type: DocumentType
    external_url: str = Field(
        min_length=1,
        validation_alias=AliasChoices("externalUrl", "cloudinaryUrl", "external_url"),
    )
    external_public_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("externalPublicId", "publicId", "external_public_id"),
    )
    file_name: str = Field(min_length=1, max_length=255)
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = None


class AssociateTempRequest(CamelModel):
    application_id: str = Field(min_length=1)
    temp_file_path: str = Field(min_length=1)
    document_type: DocumentType
    file_name: str = Field(min_length=1, max_length=255)
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = None


class DocumentResponse(CamelModel):
    message: str
    document: DocumentOut


class SignParamsRequest(CamelModel):
    params_to_sign: dict[str, Any]


class SignParamsResponse(CamelModel):
    signature: str
    api_key: str
    cloud_name: str
