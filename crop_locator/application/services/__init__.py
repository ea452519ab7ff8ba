from .crop_lookup_service import (
    CropLookupService,
    build_crop_lookup_service,
    get_crop_lookup_service,
    validate_location_payload,
)

__all__ = [
    "CropLookupService",
    "build_crop_lookup_service",
    "get_crop_lookup_service",
    "validate_location_payload",
]
