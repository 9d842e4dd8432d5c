from pathlib import PurePosixPath
from uuid import uuid4
import re


TEMP_FOLDER = "temp"

_FOLDERS = {
    "SELFIE": "profiles",
    "GOVERNMENT_ID": "documents",
    "UTILITY_BILL": "documents",
    "WORK_ID": "documents",
    "CAC_CERTIFICATE": "documents/business",
    "CAC_DOCUMENTS": "documents/business",
}
_DEFAULT_FOLDER = "documents/general"


class KeyGenerator:
    @staticmethod
    def _safe_filename(filename: str) -> str:
        # Simple sanitization
        s = re.sub(r"[^a-zA-Z0-9_.-]", "_", filename)
        return s

    @staticmethod
    def folder_for(document_type: str | None) -> str:
        if document_type is None:
            return TEMP_FOLDER
        return _FOLDERS.get(document_type, _DEFAULT_FOLDER)

    @staticmethod
    def generate_object_key(root: str, document_type: str | None, filename: str) -> str:
        """`<root>/<folder>/<random>.<ext>`; a missing document type means a temp upload."""
        ext = PurePosixPath(KeyGenerator._safe_filename(filename)).suffix.lower()
        folder = KeyGenerator.folder_for(document_type)
        return f"{root.strip('/')}/{folder}/{uuid4().hex[:10]}{ext}"

    @staticmethod
    def relocate(root: str, temp_key: str, document_type: str) -> str:
        """Destination key for promoting a temp object into its document folder."""
        name = PurePosixPath(temp_key).name
        folder = KeyGenerator.folder_for(document_type)
        return f"{root.strip('/')}/{folder}/{name}"

    @staticmethod
    def is_temp_key(root: str, object_key: str) -> bool:
        return object_key.startswith(f"{root.strip('/')}/{TEMP_FOLDER}/")
