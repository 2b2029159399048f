"""
File Manager Utility
====================
Naming helpers for documents sent to the agent backend.

Features:
    - MIME type <-> extension mapping
    - Safe, correlation-tagged upload filenames
"""

from pathlib import Path
from typing import Optional
import mimetypes


class FileManager:
    """
    Filename handling for ephemeral agent uploads.

    Usage:
        fm = FileManager()
        name = fm.upload_filename("application/pdf", "a1b2c3d4")   # document_a1b2c3d4.pdf
    """

    DEFAULT_EXTENSION = 'pdf'
    DEFAULT_MIME_TYPE = 'application/octet-stream'
    UPLOAD_PREFIX = 'document'

    # File type mappings
    MIME_TYPES = {
        'pdf': 'application/pdf',
        'png': 'image/png',
        'jpg': 'image/jpeg',
        'jpeg': 'image/jpeg',
        'gif': 'image/gif',
        'webp': 'image/webp',
        'tif': 'image/tiff',
        'tiff': 'image/tiff',
        'txt': 'text/plain',
        'csv': 'text/csv',
        'json': 'application/json',
        'docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
        'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        'pptx': 'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    }

    def get_extension(self, filename: str) -> str:
        """Extract lowercase file extension"""
        return Path(filename).suffix.lower().lstrip('.')

    def get_mime_type(self, filename: str) -> str:
        """Get MIME type from filename"""
        ext = self.get_extension(filename)
        return self.MIME_TYPES.get(ext, self.DEFAULT_MIME_TYPE)

    def extension_for_mime(self, mime_type: Optional[str]) -> str:
        """
        Best extension for a MIME type.

        Unknown or generic types fall back to ``pdf``.
        """
        if not mime_type:
            return self.DEFAULT_EXTENSION

        mime_type = mime_type.split(';')[0].strip().lower()
        for ext, known in self.MIME_TYPES.items():
            if known == mime_type:
                return ext

        guessed = mimetypes.guess_extension(mime_type)
        if guessed and mime_type != self.DEFAULT_MIME_TYPE:
            return guessed.lstrip('.')
        return self.DEFAULT_EXTENSION

    def sanitize_filename(self, filename: str) -> str:
        """Remove dangerous characters from filename"""
        safe_chars = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._-")
        name = Path(filename).stem
        ext = self.get_extension(filename)

        sanitized = "".join(c if c in safe_chars else "_" for c in name)
        sanitized = sanitized[:100]

        if not ext:
            return sanitized or "file"
        return f"{sanitized}.{ext}" if sanitized else f"file.{ext}"

    def upload_filename(self, mime_type: Optional[str], call_id: str, prefix: str = UPLOAD_PREFIX) -> str:
        """
        Filename for an ephemeral agent upload.

        Format: {prefix}_{call_id}.{ext}
        Example: document_a1b2c3d4.pdf
        """
        ext = self.extension_for_mime(mime_type)
        return self.sanitize_filename(f"{prefix}_{call_id}.{ext}")


# Singleton instance
file_manager = FileManager()
