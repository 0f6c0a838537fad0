"""Utilities to build request payloads for the generate and predict endpoints."""

from typing import Any, Dict, List, Optional

from models.image_asset import ImageAsset


def text_part(text: str) -> Dict[str, Any]:
    return {"text": text}


def image_part(image: ImageAsset) -> Dict[str, Any]:
    """Wrap an image asset as an inline-data part."""
    return {"inlineData": {"mimeType": image.mime_type, "data": image.encoded_payload}}


def build_contents(parts: List[Dict[str, Any]], role: Optional[str] = None) -> Dict[str, Any]:
    """Build a generateContent payload holding a single turn."""
    turn: Dict[str, Any] = {"parts": parts}
    if role:
        turn["role"] = role
    return {"contents": [turn]}


def build_predict_payload(prompt: str, sample_count: int = 1) -> Dict[str, Any]:
    """Build a predict payload for the image-generation model."""
    return {"instances": [{"prompt": prompt}], "parameters": {"sampleCount": sample_count}}
