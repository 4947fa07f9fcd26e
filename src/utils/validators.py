"""Input validators for uploaded images."""

from io import BytesIO

from fastapi import UploadFile, HTTPException
from PIL import Image, UnidentifiedImageError

from config.constants import MAX_UPLOAD_SIZE


async def validate_image_upload(
    file: UploadFile,
    max_size_bytes: int = MAX_UPLOAD_SIZE
) -> bytes:
    """
    Validate image file type and size, return content.

    Args:
        file: The uploaded file
        max_size_bytes: Maximum file size in bytes

    Returns:
        File content as bytes

    Raises:
        HTTPException 413: File too large
        HTTPException 400: Empty file or not a decodable image
    """
    content = await file.read()
    if len(content) > max_size_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File too large (max {max_size_bytes // (1024 * 1024)} MB)"
        )
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")

    if not is_image(content):
        # Generic message; the decoder error is not surfaced
        raise HTTPException(status_code=400, detail="Invalid image format")

    await file.seek(0)
    return content


def is_image(content: bytes) -> bool:
    """True when Pillow can identify ``content`` as an image."""
    try:
        with Image.open(BytesIO(content)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return False
    return True
