from __future__ import annotations

import os
import sys
import time
from typing import List, Optional

from openai import OpenAI
from openai import APIConnectionError, APITimeoutError, RateLimitError, InternalServerError

from agile_planner.adapters.llm_base import GenerationClient, Message
from agile_planner.errors import ProviderError

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class OpenAIAdapter(GenerationClient):
    """Chat-completions client. Also drives Groq through its OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        name: str = "openai",
        client: Optional[OpenAI] = None,
        max_attempts: int = 4,
    ) -> None:
        self.name = name
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if client is None and not self.api_key:
            raise ProviderError("OPENAI_API_KEY is not set.", {"provider": name})
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4.1")
        self.client = client or OpenAI(api_key=self.api_key, base_url=base_url)
        self.max_attempts = max_attempts

    @classmethod
    def for_groq(cls, api_key: Optional[str] = None) -> "OpenAIAdapter":
        api_key = api_key or os.getenv("GROQ_API_KEY")
        if not api_key:
            raise ProviderError("GROQ_API_KEY is not set.", {"provider": "groq"})
        return cls(
            api_key=api_key,
            model=os.getenv("GROQ_MODEL", "llama3-70b-8192"),
            base_url=GROQ_BASE_URL,
            name="groq",
        )

    def generate(self, messages: List[Message]) -> str:
        max_tokens = int(os.getenv("AGILE_PLANNER_MAX_OUTPUT_TOKENS", "4000"))
        temperature = float(os.getenv("AGILE_PLANNER_TEMPERATURE", "0.7"))
        attempt = 0
        backoff = 1.0
        while True:
            attempt += 1
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    response_format={"type": "json_object"},
                )
                if not response.choices:
                    print(f"[{self.name}] response carried no choices", file=sys.stderr)
                    return ""
                content = response.choices[0].message.content
                usage = getattr(response, "usage", None)
                if usage:
                    print(
                        f"[{self.name}] model={self.model} "
                        f"prompt_tokens={getattr(usage, 'prompt_tokens', None)} "
                        f"completion_tokens={getattr(usage, 'completion_tokens', None)} "
                        f"total_tokens={getattr(usage, 'total_tokens', None)}",
                        file=sys.stderr,
                    )
                else:
                    print(f"[{self.name}] usage not provided by SDK", file=sys.stderr)
                return content or ""
            except RateLimitError as exc:
                error = getattr(exc, "error", None)
                code = getattr(error, "code", None)
                if code == "insufficient_quota":
                    raise ProviderError.wrap(
                        f"{self.name} API quota exceeded. Please enable billing for this account.",
                        exc,
                        provider=self.name,
                    ) from exc
                if attempt >= self.max_attempts:
                    raise ProviderError.wrap(
                        f"{self.name} rate limit persisted after {attempt} attempts.",
                        exc,
                        provider=self.name,
                    ) from exc
            except (APITimeoutError, APIConnectionError, InternalServerError) as exc:
                if attempt >= self.max_attempts:
                    raise ProviderError.wrap(
                        f"{self.name} request failed after {attempt} attempts.",
                        exc,
                        provider=self.name,
                    ) from exc
            print(f"[{self.name}] transient error attempt={attempt} sleeping={backoff:.1f}s", file=sys.stderr)
            time.sleep(backoff)
            backoff *= 2
