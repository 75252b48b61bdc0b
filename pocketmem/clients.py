"""OpenAI-compatible chat completion client."""

from __future__ import annotations

import logging
import os
from copy import deepcopy
from typing import Any, Mapping, MutableMapping, Sequence

from openai import OpenAI

from .config import AI_MODEL, API_TIMEOUT

logger = logging.getLogger(__name__)


DEFAULT_EXTRA_BODY: Mapping[str, Any] = {
    "extra_body": {"chat_template_kwargs": {"enable_thinking": False}}
}


class LLMClient:
    """Thin wrapper over :class:`openai.OpenAI` with provider defaults.

    The model and timeout are fixed for the lifetime of the client. The SDK's
    automatic retries are disabled so every failure reaches the caller.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str = AI_MODEL,
        provider: str = "openai",
        api_key: str | None = None,
        api_key_env: str | None = None,
        timeout: float = API_TIMEOUT,
        default_extra_body: Mapping[str, Any] | None = None,
    ) -> None:
        provider_key = provider.lower()
        if provider_key not in {"vllm", "deepseek", "openai"}:
            raise ValueError(f"Unsupported provider '{provider}'")

        if api_key is None:
            env_name = api_key_env or (
                "DEEPSEEK_API_KEY" if provider_key == "deepseek" else "OPENAI_API_KEY"
            )
            api_key = os.environ.get(env_name) or ""

        extra = default_extra_body
        if extra is None and provider_key == "vllm":
            extra = DEFAULT_EXTRA_BODY

        self._client = OpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )
        self.model = model
        self.provider = provider_key
        self.timeout = timeout
        self.default_extra_body = dict(extra or {})

    # ------------------------------------------------------------------
    # Chat completions
    # ------------------------------------------------------------------
    def chat(
        self,
        messages: Sequence[Mapping[str, object]],
        *,
        temperature: float | None = None,
    ) -> str:
        payload: MutableMapping[str, Any] = {"model": self.model, "messages": list(messages)}
        if temperature is not None:
            payload["temperature"] = temperature
        if self.default_extra_body:
            payload.update(deepcopy(self.default_extra_body))

        logger.debug("Dispatching chat request: %s", payload)
        response = self._client.chat.completions.create(**payload)
        logger.debug("Chat raw response: %s", response)
        choice = response.choices[0].message
        return (getattr(choice, "content", "") or "").strip()

    def complete(self, system_prompt: str, user_text: str, *, temperature: float) -> str:
        """Send one system and one user message and return the reply text."""

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_text},
        ]
        return self.chat(messages, temperature=temperature)


__all__ = ["LLMClient"]
