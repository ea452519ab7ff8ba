"""Decode the crop list the language model returns as raw text."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, List, Tuple

from pydantic import ValidationError

from ..schemas import CropDecodeResult, CropRecord


def _strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?", "", cleaned, flags=re.IGNORECASE).strip()
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3].strip()
    return cleaned


def validate_crop_items(items: Iterable[Any]) -> Tuple[List[CropRecord], int]:
    """Keep the elements that are well-formed crop objects, in order."""
    crops: List[CropRecord] = []
    dropped = 0
    for item in items:
        if not isinstance(item, dict):
            dropped += 1
            continue
        try:
            crops.append(
                CropRecord(nombre=item.get("nombre"), descripcion=item.get("descripcion"))
            )
        except ValidationError:
            dropped += 1
    return crops, dropped


def parse_crop_response(raw: Any) -> CropDecodeResult:
    if not isinstance(raw, str) or not raw.strip():
        return CropDecodeResult(error="empty_response")
    try:
        data = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as exc:
        return CropDecodeResult(error=f"invalid_json: {exc.msg}")
    except RecursionError:
        return CropDecodeResult(error="invalid_json: nesting too deep")
    if not isinstance(data, list):
        return CropDecodeResult(error=f"not_an_array: {type(data).__name__}")
    crops, dropped = validate_crop_items(data)
    return CropDecodeResult(crops=crops, dropped=dropped)


def parse_crops(raw: Any) -> List[CropRecord]:
    return parse_crop_response(raw).crops
