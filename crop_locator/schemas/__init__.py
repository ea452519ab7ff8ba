from .models import (
    CacheEntry,
    CacheLookup,
    CropDecodeResult,
    CropListResponse,
    CropRecord,
)

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "CropDecodeResult",
    "CropListResponse",
    "CropRecord",
]
