"""Grammar and style suggestions backed by the TextGears API."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from ..errors import Internal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Suggestion:
    original: str
    replacement: str


class GrammarClient:
    """Thin client for the TextGears ``/grammar`` endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.textgears.com",
        language: str = "en-US",
        timeout: float = 15.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.language = language
        self.timeout = timeout

    def suggest(self, text: str) -> list[Suggestion]:
        """
        Ask the service for corrections to ``text``.

        Returns one suggestion per reported error that carries at least one
        replacement, using the first replacement offered.

        Raises:
            Internal: If the request fails or the payload is not recognised
        """
        logger.info("Requesting grammar suggestions from TextGears")
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/grammar",
                    json={
                        "text": text,
                        "language": self.language,
                        "key": self.api_key,
                        "ai": True,
                    },
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Grammar service request failed: {e}", exc_info=True)
            raise Internal("Error improving content")

        errors = (data.get("response") or {}).get("errors") if isinstance(data, dict) else None
        if not isinstance(errors, list):
            logger.error(f"Unexpected grammar API response structure: {data}")
            raise Internal("Invalid API response")

        suggestions: list[Suggestion] = []
        for error in errors:
            if not isinstance(error, dict):
                logger.warning(f"Skipping malformed grammar error entry: {error!r}")
                continue
            bad = error.get("bad")
            better = error.get("better") or []
            if bad and isinstance(better, list) and better:
                suggestions.append(Suggestion(original=bad, replacement=better[0]))
        return suggestions


def apply_suggestions(text: str, suggestions: list[Suggestion]) -> str:
    """Apply each suggestion to the first occurrence of its fragment, in order."""
    improved = text
    for suggestion in suggestions:
        improved = improved.replace(suggestion.original, suggestion.replacement, 1)
    return improved
