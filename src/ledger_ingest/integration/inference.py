import json
import os
import re
from typing import Any

import openai
from openai import OpenAI

from ledger_ingest.core import settings
from ledger_ingest.errors import QuotaExceeded, RateLimited
from ledger_ingest.logger import get_logger

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class InferenceError(Exception):
    """The semantic service could not produce a usable answer."""


class InferenceUnavailable(InferenceError):
    pass


class MalformedResponse(InferenceError):
    pass


def parse_json_payload(text: str) -> dict[str, Any]:
    """Parse a model answer that should be one JSON object, tolerating code fences."""
    cleaned = _CODE_FENCE.sub("", text).strip()
    if not cleaned.startswith("{"):
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise MalformedResponse("Response does not contain a JSON object")
        cleaned = cleaned[start:end + 1]
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"Response is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedResponse("Response JSON is not an object")
    return payload


class SemanticInference:
    """
    Prompt-in, JSON-out access to an OpenAI-compatible chat model.

    Throttling is surfaced as ``RateLimited`` / ``QuotaExceeded`` and never
    retried here: every call is metered.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = settings.DEFAULT_OPENAI_MODEL,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self.client = OpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url or os.getenv("OPENAI_BASE_URL") or None,
            timeout=timeout if timeout is not None else settings.OPENAI_TIMEOUT,
            max_retries=0,
        )
        self.model = model

    @classmethod
    def from_env(cls) -> "SemanticInference | None":
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            return None
        model = settings.get_env_str("OPENAI_MODEL", settings.DEFAULT_OPENAI_MODEL)
        base_url = os.getenv("OPENAI_BASE_URL")
        logger.info("Semantic inference enabled: model=%s, base_url=%s", model, base_url or "default")
        return cls(api_key=api_key, model=model, base_url=base_url)

    def complete_json(self, instructions: str, user_input: str) -> dict[str, Any]:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": instructions},
                    {"role": "user", "content": user_input},
                ],
                temperature=0.0,
            )
        except openai.RateLimitError as exc:
            if getattr(exc, "code", None) == "insufficient_quota":
                raise QuotaExceeded() from exc
            raise RateLimited() from exc
        except openai.APIStatusError as exc:
            if exc.status_code == 402:
                raise QuotaExceeded() from exc
            if exc.status_code == 429:
                raise RateLimited() from exc
            logger.error("Inference service returned HTTP %s: %s", exc.status_code, exc)
            raise InferenceUnavailable(f"Inference service error {exc.status_code}") from exc
        except openai.APIError as exc:
            logger.error("Inference service unreachable: %s", exc)
            raise InferenceUnavailable(str(exc)) from exc

        text = self._extract_output_text(response)
        if not text:
            raise MalformedResponse("Empty response from inference service")
        logger.debug("Raw inference response: %s", text[:500])
        return parse_json_payload(text)

    @staticmethod
    def _extract_output_text(response: object) -> str | None:
        choices = getattr(response, "choices", None)
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if isinstance(content, str):
            return content.strip()
        return None
