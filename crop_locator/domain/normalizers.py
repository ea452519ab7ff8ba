import re
from typing import Any, Optional

KEY_SEPARATOR = "_"

_OUTSIDE_KEY_ALPHABET = re.compile(r"[^a-z0-9]+")
_REPEATED_SEPARATORS = re.compile(r"_+")


def normalize_location_key(raw: Any) -> Optional[str]:
    """Map a free-text location to its cache key.

    ``"San Andrés Tuxtla, Veracruz, México"`` becomes
    ``"san_andr_s_tuxtla_veracruz_m_xico"``. Returns ``None`` when nothing
    usable is left.
    """
    if not raw or not isinstance(raw, str):
        return None
    key = _OUTSIDE_KEY_ALPHABET.sub(KEY_SEPARATOR, raw.lower())
    key = _REPEATED_SEPARATORS.sub(KEY_SEPARATOR, key)
    key = key.strip(KEY_SEPARATOR)
    return key or None
