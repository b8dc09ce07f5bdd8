"""Base text-generation provider implementing the Template Method pattern.

All providers share the same call algorithm:
    complete() → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK client (bounded by a timeout)
  - _call_api: make one raw API call and return the text response

Prompt construction lives in neuron_core.prompts and outcome classification
in neuron_core.acquisition, so a provider never decides what a failure means.
It raises, and the acquisition protocol classifies.
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

# Shared defaults; subclasses may override as class attributes if needed.
_MAX_RETRIES = 2
_MAX_TOKENS = 4096
_DEFAULT_TIMEOUT = 60.0

# Only failures whose text looks transient are retried here. Auth, quota and
# deployment errors surface immediately so the protocol can classify them.
_TRANSIENT_MARKERS = ("timeout", "timed out", "connection", "temporarily")
_TRANSIENT_STATUS = {502, 503, 504}
_TRANSIENT_STATUS_RE = re.compile(r"\b50[234]\b")


def is_transient(exc: Exception) -> bool:
    if getattr(exc, "status_code", None) in _TRANSIENT_STATUS:
        return True
    text = f"{type(exc).__name__} {exc}".lower()
    if _TRANSIENT_STATUS_RE.search(text):
        return True
    return any(marker in text for marker in _TRANSIENT_MARKERS)


class BaseProvider(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    TEMPERATURE: float = 0.2
    MODEL: str = ""

    def __init__(self, model: str | None = None, timeout: float = _DEFAULT_TIMEOUT):
        self.model = model or self.MODEL
        self.timeout = timeout

    @property
    def name(self) -> str:
        return f"{self.__class__.__name__}({self.model})"

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def complete(self, messages: list[dict], json_mode: bool = False) -> str:
        """Send role-tagged messages and return the raw text response.

        With ``json_mode`` the provider is asked to constrain its output to a
        single JSON object. Raises on failure once retries are exhausted.
        """
        return self._call_with_retry(messages, json_mode)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, messages: list[dict], json_mode: bool) -> str:
        """Make a single API call and return the raw text response.

        This is the only method subclasses must implement. It should raise
        on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, messages: list[dict], json_mode: bool) -> str:
        """Retry transient _call_api failures with exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(messages, json_mode)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1 or not is_transient(e):
                    logger.error("%s call failed: %s", self.name, e)
                    raise
                delay = 2**attempt
                logger.warning(
                    "%s transient error (attempt %d/%d): %s. Retrying in %ds...",
                    self.name,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise RuntimeError(f"{self.name}: MAX_RETRIES must be at least 1")
