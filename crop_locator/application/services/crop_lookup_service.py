"""Read-through crop lookup: cache first, language model on a miss."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping

from ...domain.crop_parser import parse_crop_response
from ...domain.errors import CropServiceError, internal, invalid_argument
from ...domain.normalizers import normalize_location_key
from ...infra.crop_cache import CropCacheError, CropCacheStore, get_crop_cache
from ...infra.llm import CropCompletionsClient, build_completions_client
from ...infra.secrets import ApiKeyProvider, build_api_key_provider
from ...observability.logging_utils import (
    log_error,
    log_event,
    log_warning,
    summarize_text,
)
from ...schemas import CacheEntry, CropListResponse


def validate_location_payload(payload: Any) -> str:
    location = payload.get("ubicacion") if isinstance(payload, Mapping) else None
    if not isinstance(location, str) or not location.strip():
        log_warning("crop_request_invalid", payload=summarize_text(repr(payload), 200))
        raise invalid_argument(
            'Argumento "ubicacion" inválido o ausente en la solicitud.'
        )
    return location


class CropLookupService:
    def __init__(
        self,
        cache: CropCacheStore,
        api_keys: ApiKeyProvider,
        ai_client: CropCompletionsClient,
    ) -> None:
        self._cache = cache
        self._api_keys = api_keys
        self._ai_client = ai_client

    def close(self) -> None:
        self._ai_client.close()

    def handle(self, payload: Any) -> CropListResponse:
        location = validate_location_payload(payload)
        key = normalize_location_key(location)
        if not key:
            log_warning("crop_request_invalid", location=summarize_text(location, 120))
            raise invalid_argument("Formato de ubicación no válido.")
        log_event("crop_request_received", key=key)
        try:
            return self._resolve(key, location)
        except CropServiceError as exc:
            log_error(
                "crop_request_failed",
                key=key,
                kind=exc.kind.value,
                detail=exc.detail,
            )
            raise
        except Exception as exc:
            log_error(
                "crop_request_failed",
                key=key,
                kind="internal",
                detail=f"{type(exc).__name__}: {exc}",
            )
            raise internal(
                "Ocurrió un error inesperado al obtener los cultivos.",
                detail=str(exc),
            ) from exc

    def _resolve(self, key: str, location: str) -> CropListResponse:
        try:
            lookup = self._cache.lookup(key)
        except CropCacheError as exc:
            raise internal(
                "No se pudo consultar la caché de cultivos.", detail=str(exc)
            ) from exc
        if lookup.is_hit:
            log_event("crop_cache_hit", key=key, crops=len(lookup.entry.crops))
            return CropListResponse(cultivos=lookup.entry.crops)
        if lookup.status == "corrupt":
            log_warning("crop_cache_corrupt", key=key, reason=lookup.reason)
        else:
            log_event("crop_cache_miss", key=key)

        api_key = self._api_keys.get_api_key()
        raw = self._ai_client.request_crops(location, api_key)
        log_event("crop_ai_raw", key=key, raw_summary=summarize_text(raw))

        decoded = parse_crop_response(raw)
        if not decoded.ok:
            log_warning("crop_parse_failed", key=key, error=decoded.error)
        log_event(
            "crop_parse_result",
            key=key,
            crops=len(decoded.crops),
            dropped=decoded.dropped,
        )
        if not decoded.crops:
            return CropListResponse(cultivos=[])

        self._cache.put(
            CacheEntry(key=key, original_query=location, crops=decoded.crops)
        )
        return CropListResponse(cultivos=decoded.crops)


def build_crop_lookup_service() -> CropLookupService:
    return CropLookupService(
        cache=get_crop_cache(),
        api_keys=build_api_key_provider(),
        ai_client=build_completions_client(),
    )


@lru_cache(maxsize=1)
def get_crop_lookup_service() -> CropLookupService:
    return build_crop_lookup_service()
