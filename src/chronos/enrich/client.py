"""Enrichment clients for generated capsule text.

Provides an interface for producing a cryptic hint from a capsule's media,
a reflection question from its note, and a refined version of the note.
"""

import base64
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests

from ..config import EnrichmentConfig
from ..errors import EnrichmentError
from ..models.capture import media_kind_for

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"

OFFLINE_HINT = "A mysterious memory from the past..."
IMAGE_HINT_FALLBACK = "A locked visual memory."
MEDIA_HINT_FALLBACK = "A voice echoing from yesterday."

IMAGE_HINT_PROMPT = (
    "Analyze this image and write a short, mysterious, one-sentence cryptic hint about what is "
    "inside this time capsule. Do not reveal exactly what it is, just give a poetic clue. "
    "Example: 'A frozen moment of laughter under the sun.'"
)
MEDIA_HINT_PROMPT = (
    "Write a short, mysterious, one-sentence cryptic hint about a time capsule containing a secret "
    "video, audio recording, or message. It should be poetic and evoke curiosity."
)


def gemini_api_key() -> Optional[str]:
    return os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")


class EnrichmentClient(ABC):
    """Abstract interface for enrichment clients.

    Every method raises EnrichmentError when the service fails; callers
    decide whether that blocks anything.
    """

    @abstractmethod
    def hint(self, artifact_bytes: bytes, content_type: str) -> str:
        """Short cryptic hint about the media, shown while the capsule is locked."""

    @abstractmethod
    def reflect(self, note: str) -> str:
        """Question or reflection for the future reader of the note."""

    @abstractmethod
    def refine(self, note: str) -> str:
        """Rewrite the note to be more timeless, keeping its meaning."""

    @property
    @abstractmethod
    def engine_name(self) -> str:
        """Return engine identifier (e.g., 'offline', 'gemini', 'openai')."""

    @property
    def provider_model(self) -> str | None:
        """Return provider/model string for real clients, None for offline."""
        return None


class OfflineEnrichmentClient(EnrichmentClient):
    """Fixed defaults used when no credential is configured."""

    @property
    def engine_name(self) -> str:
        return "offline"

    def hint(self, artifact_bytes: bytes, content_type: str) -> str:
        return OFFLINE_HINT

    def reflect(self, note: str) -> str:
        return ""

    def refine(self, note: str) -> str:
        return note


class RealEnrichmentClient(EnrichmentClient):
    """Enrichment through the Gemini or OpenAI HTTP APIs.

    Requires GEMINI_API_KEY (or API_KEY) for gemini, OPENAI_API_KEY for openai.
    """

    def __init__(
        self,
        provider: str = "gemini",
        model: str | None = None,
        api_key: str | None = None,
        temperature: float = 0.7,
        timeout_seconds: int = 45,
    ):
        """Initialize real enrichment client.

        Args:
            provider: 'gemini' or 'openai'
            model: Model name (defaults based on provider)
            api_key: API key; read from the environment if None
            temperature: Sampling temperature
            timeout_seconds: HTTP timeout per request
        """
        self.provider = provider.lower()

        if self.provider == "gemini":
            self.api_key = api_key or gemini_api_key()
            self.model = model or DEFAULT_GEMINI_MODEL
        elif self.provider == "openai":
            self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
            self.model = model or DEFAULT_OPENAI_MODEL
        else:
            raise ValueError(f"Unsupported provider: {provider}")

        if not self.api_key:
            raise ValueError(f"Missing API key: set {self.provider.upper()}_API_KEY environment variable")

        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    @property
    def engine_name(self) -> str:
        return self.provider

    @property
    def provider_model(self) -> str:
        return f"{self.provider}/{self.model}"

    def hint(self, artifact_bytes: bytes, content_type: str) -> str:
        # Only images are sent to the model; other media get a generic prompt.
        if media_kind_for(content_type) == "image" and artifact_bytes:
            text = self._generate(IMAGE_HINT_PROMPT, image=(artifact_bytes, content_type))
            return text or IMAGE_HINT_FALLBACK
        text = self._generate(MEDIA_HINT_PROMPT)
        return text or MEDIA_HINT_FALLBACK

    def reflect(self, note: str) -> str:
        prompt = (
            f'The user is creating a time capsule with the following note: "{note}".\n'
            "Write a short, inspiring question or reflection for the user to read when they open "
            "this in the future. It should make them think about how they've changed since they "
            "wrote the note."
        )
        return self._generate(prompt)

    def refine(self, note: str) -> str:
        prompt = (
            "Rewrite the following time capsule note to be more emotional, timeless, and impactful "
            f'for a future self, but keep the core meaning: "{note}"'
        )
        return self._generate(prompt) or note

    def _generate(self, prompt: str, image: tuple[bytes, str] | None = None) -> str:
        try:
            if self.provider == "gemini":
                return self._call_gemini(prompt, image)
            return self._call_openai(prompt, image)
        except requests.RequestException as e:
            raise EnrichmentError(f"{self.provider} request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EnrichmentError(f"Unexpected {self.provider} response: {e}") from e

    def _call_gemini(self, prompt: str, image: tuple[bytes, str] | None) -> str:
        parts: list[dict[str, Any]] = []
        if image is not None:
            data, mime_type = image
            parts.append({
                "inlineData": {
                    "mimeType": mime_type,
                    "data": base64.b64encode(data).decode("ascii"),
                }
            })
        parts.append({"text": prompt})

        payload = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"temperature": self.temperature},
        }
        response = requests.post(
            GEMINI_URL.format(model=self.model),
            params={"key": self.api_key},
            headers={"Content-Type": "application/json"},
            json=payload,
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return _extract_gemini_text(response.json()).strip()

    def _call_openai(self, prompt: str, image: tuple[bytes, str] | None) -> str:
        content: Any = prompt
        if image is not None:
            data, mime_type = image
            encoded = base64.b64encode(data).decode("ascii")
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
            ]

        payload = {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": 300,
            "messages": [{"role": "user", "content": content}],
        }
        response = requests.post(
            OPENAI_URL,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return str(response.json()["choices"][0]["message"]["content"] or "").strip()


def _extract_gemini_text(response: dict) -> str:
    if not isinstance(response, dict):
        raise ValueError("response_not_dict")
    candidates = response.get("candidates") or []
    for candidate in candidates:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        if not isinstance(content, dict):
            continue
        texts = [str(part["text"]) for part in content.get("parts") or [] if isinstance(part, dict) and "text" in part]
        if texts:
            return "".join(texts)
    if candidates:
        return ""
    raise ValueError("no_candidates_in_response")


def get_enrichment_client(
    engine: str = "auto",
    config: EnrichmentConfig | None = None,
) -> EnrichmentClient:
    """Get appropriate enrichment client based on engine setting and available API keys.

    Args:
        engine: 'offline', 'gemini', 'openai', or 'auto'
                'auto' uses Gemini, then OpenAI, when a key is set, else offline
        config: Optional model/temperature/timeout settings

    Returns:
        EnrichmentClient implementation
    """
    config = config or EnrichmentConfig()
    options = {
        "model": config.model,
        "temperature": config.temperature,
        "timeout_seconds": config.timeout_seconds,
    }

    if engine == "offline":
        return OfflineEnrichmentClient()

    if engine == "gemini":
        if not gemini_api_key():
            raise ValueError("GEMINI_API_KEY not set")
        return RealEnrichmentClient(provider="gemini", **options)

    if engine == "openai":
        if not os.environ.get("OPENAI_API_KEY"):
            raise ValueError("OPENAI_API_KEY not set")
        return RealEnrichmentClient(provider="openai", **options)

    if engine == "auto":
        if gemini_api_key():
            return RealEnrichmentClient(provider="gemini", **options)
        if os.environ.get("OPENAI_API_KEY"):
            return RealEnrichmentClient(provider="openai", **options)
        logger.info("No enrichment API key found; using offline defaults")
        return OfflineEnrichmentClient()

    raise ValueError(f"Unsupported enrichment engine: {engine}")
