"""Access to the language model credential."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from ..domain.errors import internal
from ..observability.logging_utils import log_warning
from .config import get_config


class SecretStoreError(Exception):
    """The requested secret is absent or could not be read."""


class SecretStore:
    def get_secret(self, secret_path: str) -> Union[str, bytes]:
        raise NotImplementedError


class EnvSecretStore(SecretStore):
    """Secrets injected as environment variables; the path is the variable name."""

    def get_secret(self, secret_path: str) -> str:
        value = os.environ.get(secret_path)
        if value is None:
            raise SecretStoreError(f"environment variable {secret_path} is not set")
        return value


class FileSecretStore(SecretStore):
    """Secrets mounted as files under a directory."""

    def __init__(self, root: Path) -> None:
        self._root = root

    def get_secret(self, secret_path: str) -> bytes:
        path = self._root / secret_path
        try:
            return path.read_bytes()
        except OSError as exc:
            raise SecretStoreError(f"cannot read secret {path}: {exc}") from exc


class ApiKeyProvider:
    """Fetch the API key on every call so a rotated secret is picked up."""

    def __init__(self, store: SecretStore, secret_path: str) -> None:
        self._store = store
        self._secret_path = secret_path

    def get_api_key(self) -> str:
        try:
            payload = self._store.get_secret(self._secret_path)
        except SecretStoreError as exc:
            log_warning(
                "secret_fetch_failed", secret=self._secret_path, error=str(exc)
            )
            raise internal(
                "No se pudo obtener la configuración segura del servicio de IA.",
                detail=str(exc),
            ) from exc
        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as exc:
                log_warning(
                    "secret_fetch_failed", secret=self._secret_path, error="not_utf8"
                )
                raise internal(
                    "No se pudo obtener la configuración segura del servicio de IA.",
                    detail="secret payload is not valid UTF-8",
                ) from exc
        api_key = (payload or "").strip()
        if not api_key:
            log_warning("secret_fetch_failed", secret=self._secret_path, error="empty")
            raise internal(
                "No se pudo obtener la configuración segura del servicio de IA.",
                detail="secret payload is empty",
            )
        return api_key


def build_secret_store() -> SecretStore:
    cfg = get_config()
    provider = (cfg.secret_provider or "env").lower()
    if provider == "env":
        return EnvSecretStore()
    if provider == "file":
        return FileSecretStore(Path(cfg.secrets_dir))
    raise ValueError(f"unsupported SECRET_PROVIDER: {provider}")


def build_api_key_provider() -> ApiKeyProvider:
    cfg = get_config()
    return ApiKeyProvider(build_secret_store(), cfg.llm_api_key_secret)
