"""Storage for thread images.

Uploads are written under generated names inside a single directory and
referenced by their public path (``/uploads/<name>``). Deletion is
fire-and-forget: it runs off the event loop and failures are only logged.
"""

from __future__ import annotations

import asyncio
import io
import logging
import secrets
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from PIL import Image, UnidentifiedImageError

from lurk.core.errors import IOFailure, ValidationError
from lurk.core.expiry import Clock, epoch_millis, utcnow

logger = logging.getLogger(__name__)

# Pillow format name -> MIME type of each accepted image format.
_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def identify_image(data: bytes) -> str | None:
    """Decode the image header with Pillow and return its MIME type.

    Returns:
        The MIME type of a well-formed image in one of the accepted formats,
        or None if Pillow cannot identify or verify the data.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            image_format = img.format
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ):
        return None
    return _FORMATS.get(image_format or "")


class UploadStorage:
    """Validates, writes and removes uploaded image files."""

    def __init__(
        self,
        directory: str | Path,
        *,
        url_prefix: str = "/uploads",
        max_bytes: int = 5 * 1024 * 1024,
        allowed_types: Iterable[str] = tuple(_EXTENSIONS),
        clock: Clock = utcnow,
    ) -> None:
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes
        self.allowed_types = frozenset(allowed_types)
        self._clock = clock
        self._pending: set[asyncio.Task[None]] = set()

    def ensure_directory(self) -> None:
        """Create the upload directory if it does not exist yet."""
        self.directory.mkdir(parents=True, exist_ok=True)

    def validate(self, content_type: str | None, data: bytes) -> str:
        """Check an upload and return its file extension.

        Raises:
            ValidationError: If the file is empty, too large, of a disallowed
                type, or its content does not match the declared type.
        """
        mime = (content_type or "").split(";")[0].strip().lower()
        if not data:
            raise ValidationError("Uploaded file is empty")
        if len(data) > self.max_bytes:
            raise ValidationError(f"Image exceeds {self.max_bytes} bytes")
        if mime not in self.allowed_types or mime not in _EXTENSIONS:
            raise ValidationError("Unsupported image type")
        if identify_image(data) != mime:
            raise ValidationError("Image is corrupt or does not match its type")
        return _EXTENSIONS[mime]

    async def save(self, content_type: str | None, data: bytes) -> str:
        """Validate and persist an upload.

        Returns:
            Public reference of the stored file.

        Raises:
            ValidationError: If the upload is rejected.
            IOFailure: If the file could not be written.
        """
        extension = self.validate(content_type, data)
        filename = f"{epoch_millis(self._clock())}-{secrets.token_hex(6)}{extension}"
        path = self.directory / filename
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            logger.error("Failed to store upload %s: %s", filename, exc)
            raise IOFailure(f"Could not store upload {filename}") from exc
        logger.info("Stored upload %s (%d bytes)", filename, len(data))
        return f"{self.url_prefix}/{filename}"

    def _write(self, path: Path, data: bytes) -> None:
        self.ensure_directory()
        path.write_bytes(data)

    def path_for(self, ref: str) -> Path:
        """Map a public reference onto a path inside the upload directory."""
        return self.directory / PurePosixPath(ref).name

    def discard(self, ref: str) -> None:
        """Delete the file behind ``ref`` without waiting for it.

        Inside a running event loop the unlink is dispatched to a worker
        thread; otherwise it happens inline.
        """
        path = self.path_for(ref)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._unlink(path)
            return

        task = loop.create_task(asyncio.to_thread(self._unlink, path))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_pending(self) -> None:
        """Wait for dispatched deletions to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete upload %s: %s", path.name, exc)
        else:
            logger.debug("Deleted upload %s", path.name)

    def sweep_orphans(self, referenced: Iterable[str], older_than_seconds: float) -> int:
        """Delete files no thread references once they are older than the TTL.

        Args:
            referenced: Public references still held by the store.
            older_than_seconds: Minimum file age before it may be removed.

        Returns:
            Number of deleted files.
        """
        if not self.directory.is_dir():
            return 0
        keep = {PurePosixPath(ref).name for ref in referenced}
        cutoff = self._clock().timestamp() - older_than_seconds
        removed = 0
        for path in self.directory.iterdir():
            if not path.is_file() or path.name in keep:
                continue
            try:
                if path.stat().st_mtime > cutoff:
                    continue
                path.unlink()
            except OSError as exc:
                logger.warning("Failed to delete orphaned upload %s: %s", path.name, exc)
                continue
            removed += 1
        if removed:
            logger.info("Removed %d orphaned upload(s)", removed)
        return removed
