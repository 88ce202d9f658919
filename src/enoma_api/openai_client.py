"""OpenAI chat completions for page copy.

Both generators ask for a bare JSON object. Models still wrap it in
markdown fences now and then, so replies go through ``extract_json`` before
decoding.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Optional

import requests

from .config import load_config
from .form_utils import extract_json

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"
JSON_ONLY_SYSTEM_PROMPT = "You are a JSON API. You ONLY return valid JSON. No text."


class AIError(Exception):
    pass


class AIRequestError(AIError):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AITimeoutError(AIError):
    pass


class AIEmptyResponseError(AIError):
    def __init__(self, message: str, body: Any = None) -> None:
        super().__init__(message)
        self.body = body


class AIInvalidJSONError(AIError):
    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


class OpenAIClient:
    def __init__(self, api_key: Optional[str], timeout: int = 12) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def chat(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: Optional[float] = None,
        timeout: Optional[int] = None,
    ) -> str:
        """Run one chat completion and return the first choice's content."""
        if not self.api_key:
            raise AIRequestError("OPENAI_KEY is not set")

        payload: dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature

        try:
            resp = self.session.post(
                CHAT_COMPLETIONS_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=timeout or self.timeout,
            )
        except requests.Timeout as exc:
            raise AITimeoutError(f"OpenAI did not answer within {timeout or self.timeout}s") from exc
        except requests.RequestException as exc:
            raise AIRequestError(f"OpenAI request failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {"body": resp.text[:2000]}

        if resp.status_code != 200 or (isinstance(data, dict) and data.get("error")):
            logger.error("OpenAI HTTP error %d: %s", resp.status_code, str(data)[:500])
            raise AIRequestError("OpenAI request failed", status_code=resp.status_code, body=data)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            logger.error("OpenAI malformed response: %s", str(data)[:500])
            raise AIEmptyResponseError("OpenAI returned no content", body=data)
        return content

    def complete_json(
        self,
        prompt: str,
        model: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[int] = None,
    ) -> dict[str, Any]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        raw = self.chat(messages, model=model, temperature=temperature, timeout=timeout)
        try:
            parsed = json.loads(extract_json(raw))
        except ValueError:
            parsed = None
        if not isinstance(parsed, dict):
            logger.error("AI returned invalid JSON: %s", raw[:1000])
            raise AIInvalidJSONError("Invalid JSON returned from OpenAI", raw=raw)
        return parsed


@lru_cache(maxsize=1)
def get_openai_client() -> OpenAIClient:
    config = load_config()
    return OpenAIClient(config.openai_api_key, timeout=config.openai_timeout)
