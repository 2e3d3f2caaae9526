"""
Storage Service - local disk storage for uploaded documents

Files land under UPLOAD_DIR/<category>/<prefix>-<timestamp>-<random><ext>.
"""

import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import aiofiles
from fastapi import UploadFile

from fra_patta.core.config import settings
from fra_patta.core.exceptions import FileTooLargeError, InvalidFileTypeError, StorageError, ValidationError
from fra_patta.core.logging_config import logger


PATTA_CATEGORY = "pattas"
POLICY_CATEGORY = "policies"
REPORT_CATEGORY = "reports"


@dataclass
class StoredFile:
    """An upload written to disk"""
    path: str
    file_name: str
    size: int
    mime_type: Optional[str]


class StorageService:
    """Validates and persists uploads with aiofiles"""

    def __init__(self, base_dir: Optional[Path] = None):
        self._base_dir = base_dir

    @property
    def base_dir(self) -> Path:
        return self._base_dir or settings.upload_path

    def category_dir(self, category: str) -> Path:
        return self.base_dir / category

    def ensure_directories(self) -> None:
        for category in (PATTA_CATEGORY, POLICY_CATEGORY, REPORT_CATEGORY):
            self.category_dir(category).mkdir(parents=True, exist_ok=True)

    @staticmethod
    def extension_of(file_name: str) -> str:
        return Path(file_name or "").suffix.lower().lstrip(".")

    def validate_extension(self, file_name: str, allowed: Iterable[str]) -> str:
        allowed_list: List[str] = list(allowed)
        extension = self.extension_of(file_name)
        if extension not in allowed_list:
            raise InvalidFileTypeError(extension or "<none>", allowed_list)
        return extension

    @staticmethod
    def generate_file_name(prefix: str, extension: str) -> str:
        return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}.{extension}"

    async def save_upload(
        self,
        upload: UploadFile,
        category: str,
        prefix: str,
        allowed_extensions: Iterable[str],
    ) -> StoredFile:
        """Check type and size, then write the upload to disk"""
        if not upload.filename:
            raise ValidationError("No file uploaded", field="file")

        extension = self.validate_extension(upload.filename, allowed_extensions)

        content = await upload.read()
        if len(content) > settings.MAX_UPLOAD_SIZE:
            raise FileTooLargeError(settings.MAX_UPLOAD_SIZE)

        target_dir = self.category_dir(category)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / self.generate_file_name(prefix, extension)

        try:
            async with aiofiles.open(target, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.log_error_with_context(e, context="save_upload", file_path=str(target))
            raise StorageError(f"Failed to store file '{upload.filename}'")

        logger.info(
            f"[Storage] Saved {upload.filename} -> {target} ({len(content)} bytes)",
            extra={"event_type": "file_saved", "category": category, "size": len(content)}
        )
        return StoredFile(
            path=str(target),
            file_name=upload.filename,
            size=len(content),
            mime_type=upload.content_type,
        )

    def delete_file(self, file_path: Optional[str]) -> bool:
        """Remove a stored file. A missing file is not an error."""
        if not file_path:
            return False
        try:
            os.remove(file_path)
        except FileNotFoundError:
            logger.warning(f"[Storage] File already missing: {file_path}")
            return False
        logger.info(f"[Storage] Deleted {file_path}")
        return True


# Singleton instance
storage_service = StorageService()
