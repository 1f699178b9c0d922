"""
Ollama language-model adapter.

Ollama runs local models behind a small HTTP API. This adapter uses the
non-streaming /api/generate endpoint and probes /api/tags for availability.

Requirements:
    - Ollama must be installed and running (`ollama serve`)
    - A model must be pulled (`ollama pull qwen2.5:0.5b`)

Usage:
    from toolgate.llm.ollama import OllamaConfig, OllamaModel

    model = OllamaModel(OllamaConfig(model="qwen2.5:0.5b"))
    if model.is_available:
        text = model.generate(prompt)
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

import httpx

from toolgate.errors import (
    LLMConnectionError,
    LLMModelNotFoundError,
    LLMResponseError,
    LLMTimeoutError,
    OperationCancelledError,
)
from toolgate.llm.base import LanguageModel

logger = logging.getLogger(__name__)

BACKEND = "ollama"


@dataclass
class OllamaConfig:
    """Connection and sampling settings for Ollama."""

    base_url: str = "http://localhost:11434"
    model: str = "qwen2.5:0.5b"
    timeout_seconds: float = 60.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    temperature: float = 0.1
    max_tokens: int = 1024
    availability_timeout_seconds: float = 2.0


class OllamaModel(LanguageModel):
    """
    LanguageModel backed by a local Ollama server.

    Features:
        - Automatic retry on connection failures and timeouts
        - Model-not-found detection with the list of available models
        - Cancellation checked between attempts
    """

    def __init__(self, config: OllamaConfig | None = None) -> None:
        self.config = config or OllamaConfig()
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "OllamaModel":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def is_available(self) -> bool:
        """True when the server answers and has the configured model."""
        ok, message = self.check_connection()
        if not ok:
            logger.debug("Ollama unavailable: %s", message)
        return ok

    def generate(self, prompt: str, cancel_event: threading.Event | None = None) -> str:
        """
        Generate a completion, retrying transient failures.

        Raises:
            OperationCancelledError: If cancel_event is set between attempts
            LLMModelNotFoundError: If the model is not pulled (not retried)
            LLMConnectionError / LLMTimeoutError: After retries are exhausted
            LLMResponseError: If the server returns unusable output
        """
        last_error: LLMConnectionError | LLMTimeoutError | None = None

        for attempt in range(self.config.max_retries + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError()
            try:
                return self._call_ollama(prompt)
            except (LLMConnectionError, LLMTimeoutError) as e:
                last_error = e
                logger.warning(
                    "Ollama attempt %d/%d failed: %s",
                    attempt + 1,
                    self.config.max_retries + 1,
                    e.message,
                )
                if attempt < self.config.max_retries:
                    time.sleep(self.config.retry_delay_seconds)

        if last_error:
            raise last_error
        raise LLMConnectionError(
            backend=BACKEND,
            model=self.config.model,
            url=self.config.base_url,
        )

    def _call_ollama(self, prompt: str) -> str:
        """Make a single call to /api/generate."""
        client = self._get_client()

        payload = {
            "model": self.config.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_tokens,
            },
        }

        try:
            response = client.post("/api/generate", json=payload)
        except httpx.ConnectError as e:
            raise LLMConnectionError(
                backend=BACKEND,
                model=self.config.model,
                url=self.config.base_url,
                underlying_error=str(e),
            ) from e
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(
                backend=BACKEND,
                model=self.config.model,
                timeout_seconds=self.config.timeout_seconds,
            ) from e

        if response.status_code == 404:
            raise LLMModelNotFoundError(
                backend=BACKEND,
                model=self.config.model,
                available_models=self._list_models(),
            )

        if response.status_code != 200:
            raise LLMConnectionError(
                backend=BACKEND,
                model=self.config.model,
                url=self.config.base_url,
                underlying_error=f"HTTP {response.status_code}: {response.text}",
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise LLMResponseError(
                backend=BACKEND,
                model=self.config.model,
                raw_response=response.text[:500],
                reason=f"Invalid JSON from Ollama: {e}",
            ) from e

        content = data.get("response", "")
        if not isinstance(content, str) or not content:
            raise LLMResponseError(
                backend=BACKEND,
                model=self.config.model,
                raw_response=str(data)[:500],
                reason="Empty response from model",
            )
        return content

    def _list_models(self) -> list[str]:
        """List available models, or [] if the server can't tell us."""
        try:
            response = self._get_client().get(
                "/api/tags", timeout=self.config.availability_timeout_seconds
            )
        except httpx.HTTPError:
            return []
        if response.status_code != 200:
            return []
        try:
            data = response.json()
        except json.JSONDecodeError:
            return []
        return [m["name"] for m in data.get("models", []) if "name" in m]

    def get_name(self) -> str:
        return f"OllamaModel({self.config.model})"

    def get_config(self) -> dict[str, Any]:
        return {
            "backend": BACKEND,
            "base_url": self.config.base_url,
            "model": self.config.model,
            "timeout_seconds": self.config.timeout_seconds,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

    def check_connection(self) -> tuple[bool, str]:
        """
        Check if Ollama is accessible and the model is available.

        Returns:
            Tuple of (is_ok, message)
        """
        try:
            response = self._get_client().get(
                "/api/tags", timeout=self.config.availability_timeout_seconds
            )
        except httpx.ConnectError:
            return False, f"Cannot connect to Ollama at {self.config.base_url}"
        except httpx.TimeoutException:
            return False, f"Ollama at {self.config.base_url} did not answer in time"
        except httpx.HTTPError as e:
            return False, f"Error talking to Ollama: {e}"

        if response.status_code != 200:
            return False, f"Ollama returned HTTP {response.status_code}"

        try:
            models = [m["name"] for m in response.json().get("models", []) if "name" in m]
        except json.JSONDecodeError:
            return False, "Ollama returned an invalid model list"

        if not models:
            return False, f"No models available. Run: ollama pull {self.config.model}"

        # Accept "model" for "model:latest"
        wanted = self.config.model
        if wanted in models or f"{wanted}:latest" in models:
            return True, f"Model {wanted} available"
        return False, f"Model {wanted} not found. Available: {', '.join(models)}"
