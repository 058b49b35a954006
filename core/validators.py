"""
Input validation utilities for uploaded files.
"""
import os
from pathlib import Path
from typing import Iterable, Tuple, Optional


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for use
    """
    if not filename:
        raise ValueError("Filename cannot be empty")

    # Strip directory components, including Windows-style separators
    filename = os.path.basename(filename.replace("\\", "/"))

    # Keep alphanumerics, dots, dashes, underscores
    sanitized = "".join(
        char if char.isalnum() or char in "._-" else "_"
        for char in filename
    )

    if len(sanitized) > 255:
        sanitized = sanitized[:255]

    if not sanitized or sanitized.strip(".") == "":
        raise ValueError("Filename became empty after sanitization")

    return sanitized


def validate_image_file(
    filename: str,
    content_type: Optional[str],
    allowed_extensions: Iterable[str],
    allowed_content_types: Iterable[str],
) -> Tuple[bool, Optional[str]]:
    """
    Check that an upload looks like an image by extension and declared MIME type.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not filename:
        return False, "No file uploaded"

    ext = Path(filename).suffix.lower()
    if ext not in set(allowed_extensions):
        return False, "Only image files are allowed (jpeg, jpg, png, gif)"

    if content_type not in set(allowed_content_types):
        return False, "Only image files are allowed (jpeg, jpg, png, gif)"

    return True, None


def validate_file_size(file_size: int, max_size_bytes: int) -> Tuple[bool, Optional[str]]:
    """
    Validate file size.

    Args:
        file_size: File size in bytes
        max_size_bytes: Maximum allowed size in bytes

    Returns:
        Tuple of (is_valid, error_message)
    """
    if file_size <= 0:
        return False, "File size must be greater than 0"

    if file_size > max_size_bytes:
        max_size_mb = max_size_bytes / (1024 * 1024)
        actual_size_mb = file_size / (1024 * 1024)
        return False, f"File too large: {actual_size_mb:.2f}MB (max: {max_size_mb:.2f}MB)"

    return True, None
