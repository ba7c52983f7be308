"""
On-disk storage for uploaded document files.

Each document owns exactly one file, {UPLOAD_ROOT}/{document_id}{extension}.
The file is written before indexing starts and removed when the document is
deleted or its upload fails.
"""
import logging
import shutil
from pathlib import Path
from typing import Optional

from django.conf import settings

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 64 * 1024


class StorageError(Exception):
    """Raised when a document file cannot be written or removed."""
    pass


def storage_name(document_id: str, extension: str) -> str:
    """Relative file name for a document, e.g. '<uuid>.pdf'."""
    if extension and not extension.startswith('.'):
        extension = f'.{extension}'
    return f"{document_id}{extension.lower()}"


class FileStorage:
    """Document files kept under a single root directory."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root or settings.UPLOAD_ROOT)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create upload root {self.root}: {e}")
            raise StorageError(f"Cannot create upload directory: {e}")

    def get_path(self, name: str) -> Path:
        return self.root / name

    def save(self, document_id: str, extension: str, file) -> str:
        """
        Write an uploaded file for a document.

        Args:
            document_id: UUID of the owning document
            extension: File extension, with or without the dot
            file: Django UploadedFile, or any readable binary file object

        Returns:
            Storage name relative to the root

        Raises:
            StorageError: If the file cannot be written
        """
        name = storage_name(document_id, extension)
        target = self.get_path(name)

        try:
            with open(target, 'wb') as dest:
                if hasattr(file, 'chunks'):
                    for block in file.chunks():
                        dest.write(block)
                else:
                    shutil.copyfileobj(file, dest, COPY_BUFFER_SIZE)
        except OSError as e:
            logger.error(f"Failed to save {name}: {e}")
            raise StorageError(f"Failed to save file: {e}")

        logger.info(f"Saved {name} ({target.stat().st_size} bytes)")
        return name

    def copy_from(self, document_id: str, source: Path) -> str:
        """Copy a local file into storage for a document."""
        source = Path(source)
        with open(source, 'rb') as handle:
            return self.save(document_id, source.suffix, handle)

    def delete(self, name: str) -> bool:
        """
        Remove a stored file.

        Returns:
            True if a file was removed, False if there was nothing to remove
        """
        target = self.get_path(name)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to delete {name}: {e}")
            raise StorageError(f"Failed to delete file: {e}")

        logger.info(f"Deleted {name}")
        return True


def get_storage() -> FileStorage:
    """Storage rooted at the configured upload directory."""
    return FileStorage()
