"""
routegraph.llm
--------------
The language-model collaborator.

Nodes only ever see `generate(prompt) -> str`.  `OpenAIChatModel` is the
production implementation; tests pass any object with the same method.
"""
from __future__ import annotations

import logging
from typing import Protocol

import openai

from routegraph.config import Settings
from routegraph.errors import LanguageModelError, collaborator_errors

log = logging.getLogger(__name__)


class LanguageModel(Protocol):
    def generate(self, prompt: str) -> str: ...


class OpenAIChatModel:
    """
    Universal OpenAI chat-completion helper.

    • One shared client per process; the 1.x client is thread-safe.
    • `timeout` bounds each call, `max_retries` is the client's own retry
      budget.  Whatever still fails becomes a LanguageModelError.
    """

    def __init__(self, settings: Settings, client: openai.OpenAI | None = None):
        if client is None:
            if not settings.openai_api_key:
                raise RuntimeError("OPENAI_API_KEY environment variable not set.")
            client = openai.OpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.llm_timeout_s,
                max_retries=settings.llm_max_retries,
            )
        self._client = client
        self.model = settings.llm_model
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        log.info("OpenAIChatModel configured – model=%s temperature=%s max_tokens=%s",
                 self.model, self.temperature, self.max_tokens)

    def generate(self, prompt: str) -> str:
        log.debug("LLM prompt (%d chars): %.300s", len(prompt), prompt)
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.OpenAIError as exc:
            log.error("LLM call failed: %s", exc)
            raise LanguageModelError(f"language model call failed: {exc}") from exc

        content = response.choices[0].message.content or ""
        log.debug("LLM response: %.300s", content)
        return content


def call_model(llm: LanguageModel, prompt: str) -> str:
    """`llm.generate`, with any non-package failure raised as LanguageModelError."""
    with collaborator_errors(LanguageModelError, "language model call"):
        return llm.generate(prompt)
