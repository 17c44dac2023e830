from __future__ import annotations

from fastapi import UploadFile

from ..errors import BadRequest
from ..vault import ImageVault, resolve_mime_type


async def save_upload(vault: ImageVault, namespace: str, image: UploadFile) -> str:
    """
    Read an uploaded image, validate it and store it in the vault.

    Returns:
        Public URL of the stored image

    Raises:
        BadRequest: If the file is empty, too large or not an allowed image type
    """
    file_content = await image.read()
    if not file_content:
        raise BadRequest("Empty file")

    try:
        mime_type = resolve_mime_type(image.content_type, image.filename)
        return vault.save(namespace, file_content, mime_type)
    except ValueError as e:
        raise BadRequest(str(e))
