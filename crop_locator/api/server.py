from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, Tuple
from uuid import uuid4

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..application.services.crop_lookup_service import (
    CropLookupService,
    get_crop_lookup_service,
)
from ..domain.errors import CropServiceError, invalid_argument
from ..infra.config import get_config
from ..observability.logging_utils import init_logging, trace_context


@asynccontextmanager
async def lifespan(_: FastAPI):
    cfg = get_config()
    init_logging(log_path=cfg.log_path, level=cfg.log_level)
    yield
    # Only close the service if a request built it.
    if get_crop_lookup_service.cache_info().currsize:
        get_crop_lookup_service().close()
        get_crop_lookup_service.cache_clear()


app = FastAPI(title="Crop Locator", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _read_json(request: Request) -> Any:
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise invalid_argument("El cuerpo de la solicitud no es JSON válido.") from exc


def _handle_traced(service: CropLookupService, payload: Any, trace_id: str) -> dict:
    # Runs in the threadpool; the trace id is bound on the worker thread.
    with trace_context(trace_id):
        return service.handle(payload).model_dump(mode="json")


async def _run_lookup(service: CropLookupService, payload: Any) -> Tuple[dict, str]:
    trace_id = uuid4().hex
    result = await run_in_threadpool(_handle_traced, service, payload, trace_id)
    return result, trace_id


@app.get("/health")
async def health():
    cfg = get_config()
    return {"status": "ok", "llm": cfg.llm_provider, "cache": cfg.crop_cache_store}


@app.post("/obtenerCultivosPorUbicacion")
async def obtener_cultivos_por_ubicacion(
    request: Request,
    service: CropLookupService = Depends(get_crop_lookup_service),
):
    """Callable-function convention: ``{"data": ...}`` in, ``{"result": ...}`` out."""
    try:
        envelope = await _read_json(request)
        data = envelope.get("data") if isinstance(envelope, dict) else None
        result, _ = await _run_lookup(service, data)
    except CropServiceError as exc:
        return JSONResponse(
            status_code=exc.kind.http_status,
            content={
                "error": {"status": exc.kind.callable_status, "message": exc.message}
            },
        )
    return {"result": result}


@app.post("/api/v1/cultivos")
async def list_crops(
    request: Request,
    service: CropLookupService = Depends(get_crop_lookup_service),
):
    try:
        payload = await _read_json(request)
        result, trace_id = await _run_lookup(service, payload)
    except CropServiceError as exc:
        return JSONResponse(
            status_code=exc.kind.http_status,
            content={"detail": {"kind": exc.kind.value, "message": exc.message}},
        )
    return JSONResponse(content=result, headers={"X-Trace-Id": trace_id})
