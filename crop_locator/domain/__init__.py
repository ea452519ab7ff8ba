from .crop_parser import parse_crop_response, parse_crops
from .errors import CropServiceError, ErrorKind
from .normalizers import normalize_location_key

__all__ = [
    "CropServiceError",
    "ErrorKind",
    "normalize_location_key",
    "parse_crop_response",
    "parse_crops",
]
