from typing import Protocol

import requests

from campus_rag.core.errors import GatewayError
from campus_rag.core.logging import get_logger

logger = get_logger(__name__)


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


class OllamaGenerator:
    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 300.0,
        temperature: float = 0.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self._http = session or requests.Session()

    def generate(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You are a grounded RAG assistant."},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "options": {"temperature": self.temperature},
        }

        try:
            r = self._http.post(f"{self.base_url}/api/chat", json=payload, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as exc:
            logger.error("ollama request failed: %s", exc)
            raise GatewayError("generation", str(exc)) from exc
        except ValueError as exc:
            raise GatewayError("generation", f"invalid JSON from ollama: {exc}") from exc

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            logger.error("unexpected ollama response: %.200r", data)
            raise GatewayError("generation", "unexpected response shape")
        content = message.get("content") or ""
        if not isinstance(content, str):
            raise GatewayError("generation", "unexpected response shape")
        return content.strip()

    def close(self) -> None:
        self._http.close()
