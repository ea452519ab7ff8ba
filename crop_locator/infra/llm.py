"""Chat-completion clients used to resolve crops for a location."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import httpx
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from ..domain.errors import internal, unavailable
from ..observability.logging_utils import log_event, log_warning, summarize_text
from ..prompts.crop_listing import build_crop_listing_prompt
from .config import get_config


_UNAVAILABLE_MESSAGE = "Error al obtener datos de cultivos del servicio de IA."
_MALFORMED_MESSAGE = "El servicio de IA devolvió una respuesta inesperada."


def build_auth_headers(api_key: str) -> Dict[str, str]:
    return {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }


def extract_message_content(body: Any) -> str:
    """Return ``choices[0].message.content`` or fail with ``internal``."""
    choices = body.get("choices") if isinstance(body, dict) else None
    if not isinstance(choices, list) or not choices:
        raise internal(_MALFORMED_MESSAGE, detail="response has no choices")
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise internal(
            _MALFORMED_MESSAGE, detail="choices[0].message.content is not a string"
        )
    return content


class CropCompletionsClient:
    def request_crops(self, location_text: str, api_key: str) -> str:
        raise NotImplementedError

    def close(self) -> None:
        return None


class HttpCompletionsClient(CropCompletionsClient):
    """POSTs to an OpenAI-compatible ``/chat/completions`` endpoint.

    The underlying ``httpx.Client`` is created once and reused by every
    request handled by this process.
    """

    def __init__(
        self,
        *,
        api_url: str,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_url = api_url
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._client = http_client or httpx.Client(timeout=timeout, trust_env=False)

    def build_payload(self, location_text: str) -> Dict[str, Any]:
        return {
            "model": self._model,
            "messages": [
                {"role": "user", "content": build_crop_listing_prompt(location_text)}
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

    def request_crops(self, location_text: str, api_key: str) -> str:
        payload = self.build_payload(location_text)
        log_event(
            "crop_ai_call",
            provider="http",
            model=self._model,
            location=summarize_text(location_text, 120),
        )
        try:
            response = self._client.post(
                self._api_url,
                json=payload,
                headers=build_auth_headers(api_key),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = (
                f"HTTP {exc.response.status_code}: "
                f"{summarize_text(exc.response.text)}"
            )
            log_warning("crop_ai_failed", provider="http", detail=detail)
            raise unavailable(_UNAVAILABLE_MESSAGE, detail=detail) from exc
        except httpx.HTTPError as exc:
            detail = f"{type(exc).__name__}: {exc}"
            log_warning("crop_ai_failed", provider="http", detail=detail)
            raise unavailable(_UNAVAILABLE_MESSAGE, detail=detail) from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise internal(
                _MALFORMED_MESSAGE, detail="response body is not JSON"
            ) from exc
        return extract_message_content(body)

    def close(self) -> None:
        self._client.close()


def _extract_llm_text(content: Any) -> Optional[str]:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict):
                parts.append(str(item.get("text") or ""))
            else:
                parts.append(str(item))
        return "".join(parts)
    return None


class LangChainCompletionsClient(CropCompletionsClient):
    """Same contract through ``ChatOpenAI``.

    A new model, and with it a new HTTP connection pool, is built on every
    call so a rotated key takes effect immediately; connection reuse across
    requests is given up for this provider.
    """

    def __init__(
        self,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        base_url: Optional[str] = None,
        model_factory: Optional[Callable[[str], BaseChatModel]] = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._base_url = base_url
        self._model_factory = model_factory or self._build_chat_model

    def _build_chat_model(self, api_key: str) -> BaseChatModel:
        kwargs = {
            "api_key": api_key,
            "model": self._model,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "timeout": self._timeout,
            "max_retries": 0,
        }
        if self._base_url:
            kwargs["base_url"] = self._base_url
        return ChatOpenAI(**kwargs)

    def request_crops(self, location_text: str, api_key: str) -> str:
        llm = self._model_factory(api_key)
        log_event(
            "crop_ai_call",
            provider="langchain",
            model=self._model,
            location=summarize_text(location_text, 120),
        )
        try:
            result = llm.invoke([("human", build_crop_listing_prompt(location_text))])
        except Exception as exc:
            detail = f"{type(exc).__name__}: {exc}"
            log_warning("crop_ai_failed", provider="langchain", detail=detail)
            raise unavailable(_UNAVAILABLE_MESSAGE, detail=detail) from exc
        text = _extract_llm_text(getattr(result, "content", None))
        if text is None:
            raise internal(_MALFORMED_MESSAGE, detail="model returned no text content")
        return text


def build_completions_client() -> CropCompletionsClient:
    cfg = get_config()
    provider = (cfg.llm_provider or "http").lower()
    if provider == "http":
        return HttpCompletionsClient(
            api_url=cfg.llm_api_url,
            model=cfg.llm_model,
            temperature=cfg.llm_temperature,
            max_tokens=cfg.llm_max_tokens,
            timeout=cfg.llm_timeout_seconds,
        )
    if provider == "langchain":
        return LangChainCompletionsClient(
            model=cfg.llm_model,
            temperature=cfg.llm_temperature,
            max_tokens=cfg.llm_max_tokens,
            timeout=cfg.llm_timeout_seconds,
            base_url=cfg.llm_api_base,
        )
    raise ValueError(f"unsupported LLM_PROVIDER: {provider}")
