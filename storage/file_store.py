"""
Local file storage for uploaded profile pictures.
"""
import os
import secrets
import time
from pathlib import Path
from typing import Union

from core.logger import logger
from core.validators import sanitize_filename


class LocalFileStore:
    """Stores files by name under a single directory."""

    def __init__(self, root: Union[str, Path], create: bool = True):
        """
        Args:
            root: Directory holding the files
            create: Create the directory if it does not exist
        """
        self.root = Path(root)
        if create:
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError:
                logger.warning(f"Could not create storage directory {self.root}")

    def path_for(self, filename: str) -> Path:
        return self.root / sanitize_filename(filename)

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    def delete(self, filename: str) -> None:
        """Remove a stored file. Raises OSError if it cannot be removed."""
        os.remove(self.path_for(filename))

    def save(self, filename: str, data: bytes) -> str:
        """Write bytes under filename and return the stored name."""
        path = self.path_for(filename)
        path.write_bytes(data)
        logger.info(f"Stored file {path.name} ({len(data)} bytes)")
        return path.name

    @staticmethod
    def generate_name(original_filename: str, prefix: str = "profile") -> str:
        """Unique name like profile-1712345678901-123456789.jpg, keeping the original extension."""
        ext = Path(original_filename or "").suffix.lower()
        return f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}{ext}"
