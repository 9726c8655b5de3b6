"""
File storage abstraction.

Provides a simple interface for storing and retrieving generated files.
Currently uses local filesystem.
"""
import hashlib
import re
from pathlib import Path


def safe_filename(name: str) -> str:
    """Replace whitespace runs in a user-supplied name with underscores."""
    return re.sub(r"\s", "_", name)


class FileStorage:
    """
    Local file storage implementation.

    Files are organized as:
    - media/outbox/    - Rendered images handed to the outbound channel
    - media/exports/   - Exported template settings and downloads
    """

    def __init__(self, media_root: str | Path = "media"):
        self.media_root = Path(media_root)
        self.media_root.mkdir(parents=True, exist_ok=True)

    def get_outbox_dir(self) -> Path:
        """Get the outbox directory."""
        path = self.media_root / "outbox"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_exports_dir(self) -> Path:
        """Get the exports directory."""
        path = self.media_root / "exports"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def save_outbox_image(self, png_bytes: bytes) -> str:
        """
        Save a rendered PNG into the outbox.

        The filename is derived from the content, so handing over the same
        image twice overwrites a single file.

        Returns:
            Relative path to the saved file
        """
        digest = hashlib.sha256(png_bytes).hexdigest()[:16]
        file_path = self.get_outbox_dir() / f"{digest}.png"
        file_path.write_bytes(png_bytes)
        return str(file_path.relative_to(self.media_root))

    def save_export(self, filename: str, data: bytes | str) -> str:
        """
        Save an export (settings JSON or downloaded image) under its filename.

        Returns:
            Relative path to the saved file
        """
        file_path = self.get_exports_dir() / Path(filename).name
        if isinstance(data, str):
            file_path.write_text(data, encoding="utf-8")
        else:
            file_path.write_bytes(data)
        return str(file_path.relative_to(self.media_root))

    def file_exists(self, relative_path: str) -> bool:
        """Check if a file exists."""
        return (self.media_root / relative_path).exists()
