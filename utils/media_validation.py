"""Validation helpers for uploaded palm images."""

from fastapi import HTTPException, UploadFile

IMAGE_EXTENSIONS = (
    ".jpg",
    ".jpeg",
    ".png",
    ".webp",
    ".gif",
    ".bmp",
    ".heic",
)


def validate_image_file(image_file: UploadFile) -> str:
    """Validate that the upload looks like an image and return its MIME type.

    Browsers send `image/*` for every picture type; when the content type is
    missing we fall back to checking the filename extension.
    """
    content_type = (image_file.content_type or "").lower().split(";", 1)[0].strip()
    if content_type:
        if not content_type.startswith("image/"):
            raise HTTPException(status_code=415, detail="Please choose an image file.")
        return content_type
    filename = (image_file.filename or "").lower()
    if not filename.endswith(IMAGE_EXTENSIONS):
        raise HTTPException(status_code=415, detail="Unsupported or missing image content type.")
    return "image/*"


async def read_image_bytes(image_file: UploadFile) -> bytes:
    """Read validated image bytes, ensuring the upload is not empty."""
    validate_image_file(image_file)
    image_bytes = await image_file.read()
    if not image_bytes:
        raise HTTPException(status_code=400, detail="Uploaded image is empty.")
    return image_bytes
