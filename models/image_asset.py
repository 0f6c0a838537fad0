from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ImageAsset:
    """A user image normalized for upload to the analysis model.

    Attributes:
        raw_bytes: Bytes exactly as the user supplied them.
        encoded_payload: Base64 JPEG payload sent as inline data.
        mime_type: MIME type of `encoded_payload` (always image/jpeg).
        width: Width in pixels after resizing.
        height: Height in pixels after resizing.
        filename: Optional original filename.
    """

    raw_bytes: bytes = field(repr=False)
    encoded_payload: str = field(repr=False)
    mime_type: str
    width: int
    height: int
    filename: Optional[str] = None

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.encoded_payload}"
