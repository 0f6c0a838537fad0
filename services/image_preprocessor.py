"""Image preprocessing service.

Normalizes an arbitrary user image into a bounded-size JPEG payload
suitable for inline upload to the analysis model.

Public class: `ImagePreprocessor`

Example:
    pre = ImagePreprocessor(max_dimension=1600, quality=80)
    asset = pre.preprocess(raw_bytes, mime_type="image/png")
"""
from __future__ import annotations

import base64
import io
from typing import BinaryIO, Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from models.image_asset import ImageAsset
from services.gemini.errors import EncodingFailure, InvalidInput

OUTPUT_MIME_TYPE = "image/jpeg"


def scaled_size(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """Return dimensions bounded by `max_dimension`, preserving aspect ratio.

    Images already within bounds keep their size; nothing is upscaled.
    """
    longer = max(width, height)
    if longer <= max_dimension:
        return width, height
    ratio = max_dimension / float(longer)
    if width >= height:
        return max_dimension, max(1, int(round(height * ratio)))
    return max(1, int(round(width * ratio))), max_dimension


class ImagePreprocessor:
    """Resize and re-encode user images.

    Args:
        max_dimension: Longest edge allowed in the output. Defaults to 1600.
        quality: JPEG quality factor (1-95). Defaults to 80.
        background: Color used when flattening images with alpha.
    """

    def __init__(self, max_dimension: int = 1600, quality: int = 80, background: Tuple[int, int, int] | None = None):
        if max_dimension <= 0:
            raise ValueError("max_dimension must be positive.")
        self.max_dimension = max_dimension
        self.quality = quality
        self.background = background or (255, 255, 255)

    def preprocess(
        self,
        data: Union[bytes, BinaryIO],
        mime_type: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> ImageAsset:
        """Produce an ImageAsset from raw bytes or a binary file object.

        Args:
            data: Image bytes or a readable binary file object.
            mime_type: Declared MIME type; anything not `image/*` is rejected.
            filename: Optional original filename carried on the asset.

        Returns:
            An ImageAsset holding the base64 JPEG payload and final dimensions.

        Raises:
            InvalidInput: The input is empty, declared as a non-image, or cannot be decoded.
            EncodingFailure: The resized image could not be encoded as JPEG.
        """
        if mime_type and not mime_type.lower().strip().startswith("image/"):
            raise InvalidInput(f"Please choose an image file (got {mime_type}).")

        raw = data if isinstance(data, (bytes, bytearray)) else data.read()
        if not raw:
            raise InvalidInput("Uploaded image is empty.")

        try:
            src = Image.open(io.BytesIO(raw))
            src.load()
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise InvalidInput("Decoded bytes are not a supported image format.") from exc

        img = ImageOps.exif_transpose(src)
        img = self._flatten(img)

        target = scaled_size(img.width, img.height, self.max_dimension)
        if target != img.size:
            img = img.resize(target, Image.LANCZOS)

        out_io = io.BytesIO()
        try:
            img.save(out_io, format="JPEG", quality=self.quality)
        except (OSError, ValueError) as exc:
            raise EncodingFailure("Failed to encode the image.") from exc
        out_bytes = out_io.getvalue()

        return ImageAsset(
            raw_bytes=bytes(raw),
            encoded_payload=base64.b64encode(out_bytes).decode("utf-8"),
            mime_type=OUTPUT_MIME_TYPE,
            width=img.width,
            height=img.height,
            filename=filename,
        )

    def _flatten(self, img: Image.Image) -> Image.Image:
        """Convert to RGB, flattening any alpha channel against the background."""
        if img.mode == "RGB":
            return img
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, self.background)
        background.paste(rgba, mask=rgba.split()[3])
        return background
