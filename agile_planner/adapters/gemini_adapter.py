from __future__ import annotations

import os
import random
import sys
import time
from typing import List, Optional

from google import genai

from agile_planner.adapters.llm_base import GenerationClient, Message, flatten_messages
from agile_planner.errors import ProviderError


class GeminiAdapter(GenerationClient):
    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, client: Optional[object] = None) -> None:
        api_key = api_key or os.getenv("GEMINI_API_KEY")
        if client is None and not api_key:
            raise ProviderError("GEMINI_API_KEY is not set.", {"provider": self.name})

        self.client = client or genai.Client(api_key=api_key)

        primary = os.getenv("GEMINI_MODEL", "gemini-flash-latest")
        self.model_candidates: List[str] = [
            primary,
            "gemini-pro",
            "gemini-1.5-pro",
        ]

        self.max_attempts = int(os.getenv("GEMINI_MAX_ATTEMPTS", "5"))
        self.base_delay = float(os.getenv("GEMINI_BASE_DELAY_SECONDS", "1.0"))

    def _is_transient(self, err: Exception) -> bool:
        msg = str(err).lower()
        return any(s in msg for s in ["503", "unavailable", "429", "too many", "timeout", "temporarily"])

    def generate(self, messages: List[Message]) -> str:
        prompt = flatten_messages(messages)
        last_err: Exception | None = None

        for model in self.model_candidates:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    print(f"[gemini] model={model} attempt={attempt}/{self.max_attempts}", file=sys.stderr)
                    response = self.client.models.generate_content(
                        model=model,
                        contents=prompt,
                    )
                    return getattr(response, "text", None) or ""

                except Exception as e:
                    last_err = e
                    if not self._is_transient(e):
                        break

                    delay = self.base_delay * (2 ** (attempt - 1)) + random.random() * 0.5
                    print(f"[gemini] transient error: {e} -> sleeping {delay:.2f}s", file=sys.stderr)
                    time.sleep(delay)

            print(f"[gemini] switching model after failures: {model}", file=sys.stderr)

        raise ProviderError.wrap(
            "Gemini generate_content failed for all candidate models.",
            last_err or RuntimeError("no candidate model succeeded"),
            provider=self.name,
            models=self.model_candidates,
        ) from last_err
