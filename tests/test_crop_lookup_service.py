import importlib.util
import json
import sys
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

_MISSING_PYDANTIC_SETTINGS = importlib.util.find_spec("pydantic_settings") is None

if not _MISSING_PYDANTIC_SETTINGS:
    from crop_locator.application.services.crop_lookup_service import (
        CropLookupService,
    )
    from crop_locator.domain.errors import CropServiceError, ErrorKind, internal, unavailable
    from crop_locator.infra.crop_cache import CropCacheError, MemoryCropCacheStore
    from crop_locator.schemas import CacheEntry, CropRecord


THREE_CROPS = [
    {"nombre": "Maíz", "descripcion": "Grano básico."},
    {"nombre": "Frijol", "descripcion": "Leguminosa de temporal."},
    {"nombre": "Calabaza", "descripcion": "Parte de la milpa."},
]


class StubAIClient:
    def __init__(self, raw="[]", error=None):
        self.raw = raw
        self.error = error
        self.calls = []

    def request_crops(self, location_text, api_key):
        self.calls.append((location_text, api_key))
        if self.error:
            raise self.error
        return self.raw


class StubApiKeys:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    def get_api_key(self):
        self.calls += 1
        if self.error:
            raise self.error
        return "sk-test"


class RecordingCache(MemoryCropCacheStore):
    def __init__(self, documents=None):
        super().__init__(documents)
        self.put_calls = []

    def put(self, entry):
        self.put_calls.append(entry)
        return super().put(entry)


@unittest.skipUnless(
    not _MISSING_PYDANTIC_SETTINGS, "pydantic_settings is not installed"
)
class CropLookupServiceTests(unittest.TestCase):
    def _service(self, *, cache=None, ai=None, keys=None):
        self.cache = cache if cache is not None else RecordingCache()
        self.ai = ai or StubAIClient(raw=json.dumps(THREE_CROPS, ensure_ascii=False))
        self.keys = keys or StubApiKeys()
        return CropLookupService(self.cache, self.keys, self.ai)

    def test_miss_resolves_and_persists_once(self) -> None:
        service = self._service()
        response = service.handle({"ubicacion": "Xalapa, Veracruz"})

        self.assertEqual(
            [crop.model_dump() for crop in response.cultivos], THREE_CROPS
        )
        self.assertEqual(len(self.cache.put_calls), 1)
        entry = self.cache.put_calls[0]
        self.assertEqual(entry.key, "xalapa_veracruz")
        self.assertEqual(entry.original_query, "Xalapa, Veracruz")
        self.assertEqual(len(entry.crops), 3)
        self.assertEqual(self.ai.calls, [("Xalapa, Veracruz", "sk-test")])

    def test_hit_skips_secret_and_ai(self) -> None:
        cache = RecordingCache()
        cache.put(
            CacheEntry(
                key="xalapa_veracruz",
                original_query="Xalapa, Veracruz",
                crops=[CropRecord(nombre="Maíz", descripcion="Grano básico.")],
            )
        )
        cache.put_calls.clear()
        service = self._service(cache=cache)

        response = service.handle({"ubicacion": "  XALAPA -- veracruz!! "})

        self.assertEqual(
            response.cultivos, [CropRecord(nombre="Maíz", descripcion="Grano básico.")]
        )
        self.assertEqual(self.ai.calls, [])
        self.assertEqual(self.keys.calls, 0)
        self.assertEqual(self.cache.put_calls, [])

    def test_second_request_is_served_from_cache(self) -> None:
        service = self._service()
        first = service.handle({"ubicacion": "Lima, Peru"})
        second = service.handle({"ubicacion": "LIMA  peru"})
        self.assertEqual(first, second)
        self.assertEqual(len(self.ai.calls), 1)

    def test_malformed_ai_output_returns_empty_without_put(self) -> None:
        for raw in [
            '[{"nombre": "Maíz", "descripcion": "Gra',
            "Claro, estos son los cultivos: Maíz y Frijol.",
            '{"cultivos": []}',
            "[]",
        ]:
            service = self._service(ai=StubAIClient(raw=raw))
            response = service.handle({"ubicacion": "Oaxaca"})
            self.assertEqual(response.model_dump(), {"cultivos": []}, raw)
            self.assertEqual(self.cache.put_calls, [], raw)

    def test_ai_failure_is_unavailable_without_put(self) -> None:
        ai = StubAIClient(error=unavailable("caído", detail="HTTP 500: boom"))
        service = self._service(ai=ai)
        with self.assertRaises(CropServiceError) as ctx:
            service.handle({"ubicacion": "Oaxaca"})
        self.assertEqual(ctx.exception.kind, ErrorKind.UNAVAILABLE)
        self.assertEqual(self.cache.put_calls, [])

    def test_corrupt_entry_is_treated_as_miss_and_overwritten(self) -> None:
        cache = RecordingCache(
            {"lima_peru": {"nombreOriginal": "Lima, Perú", "cultivos": "corrupted"}}
        )
        service = self._service(cache=cache)

        response = service.handle({"ubicacion": "Lima, Peru"})

        self.assertEqual(len(response.cultivos), 3)
        self.assertEqual(len(self.ai.calls), 1)
        self.assertTrue(cache.lookup("lima_peru").is_hit)
        self.assertEqual(len(cache.get("lima_peru").crops), 3)

    def test_corrupt_entry_stays_when_refetch_fails(self) -> None:
        cache = RecordingCache({"lima_peru": {"cultivos": "corrupted"}})
        ai = StubAIClient(error=unavailable("caído"))
        service = self._service(cache=cache, ai=ai)
        with self.assertRaises(CropServiceError):
            service.handle({"ubicacion": "Lima, Peru"})
        self.assertEqual(cache.read_document("lima_peru"), {"cultivos": "corrupted"})

    def test_invalid_payloads_fail_before_io(self) -> None:
        for payload in [None, "Lima", {}, {"ubicacion": ""}, {"ubicacion": "   "}, {"ubicacion": 5}, {"ubicacion": "!!!"}]:
            service = self._service()
            with self.assertRaises(CropServiceError, msg=repr(payload)) as ctx:
                with patch.object(self.cache, "lookup") as lookup:
                    service.handle(payload)
            self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_ARGUMENT)
            lookup.assert_not_called()
            self.assertEqual(self.keys.calls, 0)
            self.assertEqual(self.ai.calls, [])

    def test_secret_failure_propagates_as_internal(self) -> None:
        keys = StubApiKeys(error=internal("sin clave", detail="secret payload is empty"))
        service = self._service(keys=keys)
        with self.assertRaises(CropServiceError) as ctx:
            service.handle({"ubicacion": "Oaxaca"})
        self.assertEqual(ctx.exception.kind, ErrorKind.INTERNAL)
        self.assertEqual(self.ai.calls, [])

    def test_cache_read_failure_is_internal(self) -> None:
        service = self._service()
        with patch.object(self.cache, "lookup", side_effect=CropCacheError("disk")):
            with self.assertRaises(CropServiceError) as ctx:
                service.handle({"ubicacion": "Oaxaca"})
        self.assertEqual(ctx.exception.kind, ErrorKind.INTERNAL)
        self.assertEqual(self.ai.calls, [])

    def test_unexpected_error_is_wrapped_as_internal(self) -> None:
        service = self._service(ai=StubAIClient(error=KeyError("choices")))
        with self.assertRaises(CropServiceError) as ctx:
            service.handle({"ubicacion": "Oaxaca"})
        self.assertEqual(ctx.exception.kind, ErrorKind.INTERNAL)

    def test_cache_write_failure_still_returns_crops(self) -> None:
        service = self._service()
        with patch.object(self.cache, "write_document", side_effect=RuntimeError("quota")):
            response = service.handle({"ubicacion": "Oaxaca"})
        self.assertEqual(len(response.cultivos), 3)
        self.assertEqual(self.cache.lookup("oaxaca").status, "miss")

    def test_deeply_nested_ai_output_returns_empty_without_put(self) -> None:
        service = self._service(ai=StubAIClient(raw="[" * 3000 + "]" * 3000))
        response = service.handle({"ubicacion": "Oaxaca"})
        self.assertEqual(response.model_dump(), {"cultivos": []})
        self.assertEqual(self.cache.put_calls, [])

    def test_close_releases_ai_client(self) -> None:
        ai = StubAIClient()
        ai.close = Mock()
        self._service(ai=ai).close()
        ai.close.assert_called_once_with()

    def test_partially_valid_ai_output_keeps_valid_records(self) -> None:
        raw = json.dumps([THREE_CROPS[0], {"nombre": "Sin descripción"}, THREE_CROPS[2]])
        service = self._service(ai=StubAIClient(raw=raw))
        response = service.handle({"ubicacion": "Oaxaca"})
        self.assertEqual([crop.nombre for crop in response.cultivos], ["Maíz", "Calabaza"])
        self.assertEqual(len(self.cache.put_calls[0].crops), 2)


if __name__ == "__main__":
    unittest.main()
