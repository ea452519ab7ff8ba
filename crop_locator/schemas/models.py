from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CropRecord(BaseModel):
    """One agricultural crop with a short human-readable description."""

    model_config = ConfigDict(strict=True, frozen=True)

    nombre: str
    descripcion: str

    @field_validator("nombre", "descripcion", mode="after")
    @classmethod
    def require_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be a non-empty string")
        return value


class CacheEntry(BaseModel):
    """Resolved crop list stored under a normalized location key."""

    key: str
    original_query: str
    crops: List[CropRecord] = Field(default_factory=list)
    retrieved_at: Optional[datetime] = Field(
        default=None, description="Assigned by the store when the entry is written."
    )

    def to_document(self) -> dict:
        return {
            "nombreOriginal": self.original_query,
            "cultivos": [crop.model_dump() for crop in self.crops],
        }


class CacheLookup(BaseModel):
    """Outcome of a cache read: ``hit`` carries an entry, ``corrupt`` a reason."""

    status: Literal["hit", "miss", "corrupt"]
    entry: Optional[CacheEntry] = None
    reason: Optional[str] = None

    @property
    def is_hit(self) -> bool:
        return self.status == "hit" and self.entry is not None


class CropDecodeResult(BaseModel):
    """Typed result of decoding raw model output."""

    crops: List[CropRecord] = Field(default_factory=list)
    error: Optional[str] = None
    dropped: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class CropListResponse(BaseModel):
    """Payload returned to the mobile client."""

    cultivos: List[CropRecord] = Field(default_factory=list)
