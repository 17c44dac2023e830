"""Image storage utility.

Uploaded images (avatars and post images) are stored in the vault under a
namespace folder with a hash-based folder structure derived from the image
UUID, and served back through a static mount at a stable public URL.

We intentionally store the raw bytes as-uploaded (no re-encoding) so that
animated GIF/WEBP images remain animated.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from urllib.parse import urlparse
from uuid import UUID, uuid4

from .settings import QUILL_IMAGE_SIZE_LIMIT_BYTES

logger = logging.getLogger(__name__)

AVATARS = "avatars"
POST_IMAGES = "posts"

# Allowed image MIME types
ALLOWED_MIME_TYPES: dict[str, str] = {
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/jpeg": ".jpg",
}

_EXTENSION_TO_MIME = {
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}


def hash_image_id(image_id: UUID) -> str:
    """Hash the image UUID using SHA256 for folder structure derivation."""
    return hashlib.sha256(str(image_id).encode()).hexdigest()


def resolve_mime_type(content_type: str | None, filename: str | None) -> str:
    """
    Normalize an upload's MIME type, falling back to the file extension.

    Raises:
        ValueError: If neither yields an allowed image type
    """
    mime_type = (content_type or "").lower()
    if mime_type == "image/jpg":
        mime_type = "image/jpeg"

    if mime_type not in ALLOWED_MIME_TYPES:
        name = filename or ""
        ext = name.lower().rsplit(".", 1)[-1] if "." in name else ""
        mime_type = _EXTENSION_TO_MIME.get(ext, "")

    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValueError("Invalid image format. Allowed formats: PNG, JPEG, GIF, WebP")
    return mime_type


class ImageVault:
    """Object store for uploaded images backed by a local directory."""

    def __init__(
        self,
        root: Path,
        public_prefix: str = "/vault",
        max_bytes: int = QUILL_IMAGE_SIZE_LIMIT_BYTES,
    ) -> None:
        self.root = Path(root)
        self.public_prefix = public_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def _folder(self, namespace: str, image_id: UUID) -> Path:
        """
        Get the folder path for an image based on its hashed ID.

        Example:
            hash = "a1b2c3d4..."
            folder = root/avatars/a1/b2/c3/
        """
        hash_value = hash_image_id(image_id)
        return self.root / namespace / hash_value[0:2] / hash_value[2:4] / hash_value[4:6]

    def _public_url(self, namespace: str, image_id: UUID, extension: str) -> str:
        hash_value = hash_image_id(image_id)
        return (
            f"{self.public_prefix}/{namespace}/"
            f"{hash_value[0:2]}/{hash_value[2:4]}/{hash_value[4:6]}/{image_id}{extension}"
        )

    def save(self, namespace: str, file_content: bytes, mime_type: str) -> str:
        """
        Store an image and return its public URL.

        Raises:
            ValueError: If the payload is empty, too large or of a disallowed type
        """
        if not file_content:
            raise ValueError("Empty file")

        mime_type_lower = (mime_type or "").lower()
        if mime_type_lower == "image/jpg":
            mime_type_lower = "image/jpeg"
        if mime_type_lower not in ALLOWED_MIME_TYPES:
            raise ValueError(
                f"MIME type '{mime_type}' is not allowed. Allowed types: {list(ALLOWED_MIME_TYPES.keys())}"
            )

        if len(file_content) > self.max_bytes:
            max_mb = self.max_bytes / (1024 * 1024)
            actual_mb = len(file_content) / (1024 * 1024)
            raise ValueError(
                f"File size ({actual_mb:.2f} MB) exceeds maximum of {max_mb} MB"
            )

        image_id = uuid4()
        extension = ALLOWED_MIME_TYPES[mime_type_lower]
        folder_path = self._folder(namespace, image_id)
        folder_path.mkdir(parents=True, exist_ok=True)
        file_path = folder_path / f"{image_id}{extension}"

        with open(file_path, "wb") as f:
            f.write(file_content)

        logger.info(f"Saved {namespace} image {image_id} to {file_path}")
        return self._public_url(namespace, image_id, extension)

    def try_delete(self, public_url: str | None) -> bool:
        """
        Best-effort delete of an image referenced by its public URL.

        Only URLs matching this vault's scheme are considered:
            <prefix>/<namespace>/<xx>/<yy>/<zz>/<uuid>.<ext>

        Returns True if we deleted a file, False otherwise.
        """
        if not public_url:
            return False

        try:
            # Accept absolute URLs as well; normalize to just the path.
            path = urlparse(public_url).path if "://" in public_url else public_url
            if not path.startswith(f"{self.public_prefix}/"):
                return False

            parts = path[len(self.public_prefix) + 1:].split("/")
            if len(parts) != 5:
                return False

            namespace, c1, c2, c3, filename = parts
            if "." not in filename:
                return False

            uuid_str, ext = filename.rsplit(".", 1)
            image_id = UUID(uuid_str)

            hash_value = hash_image_id(image_id)
            if namespace not in (AVATARS, POST_IMAGES) or (c1, c2, c3) != (
                hash_value[0:2],
                hash_value[2:4],
                hash_value[4:6],
            ):
                return False
            if f".{ext.lower()}" not in ALLOWED_MIME_TYPES.values():
                return False

            vault_file = self.root / namespace / c1 / c2 / c3 / f"{image_id}.{ext}"
            if vault_file.exists():
                vault_file.unlink()
                return True
            return False
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to delete image for url={public_url}: {e}")
            return False
