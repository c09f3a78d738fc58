"""Per-process state handed explicitly to the dispatcher and the tools.

The generation client is built on first use and then reused for the rest of
the run. Switching provider or credentials means building a new context with
``with_provider``; an existing context never changes its client.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Optional

from agile_planner.adapters.gemini_adapter import GeminiAdapter
from agile_planner.adapters.llm_base import GenerationClient
from agile_planner.adapters.mock_adapter import MockAdapter
from agile_planner.adapters.openai_adapter import OpenAIAdapter
from agile_planner.artifacts.writers import BacklogFileWriter
from agile_planner.errors import ProviderError
from agile_planner.protocol.normalizer import RequestIdAllocator
from agile_planner.validators.factory import ValidatorFactory, validators as default_validators

PROVIDERS = ("auto", "openai", "groq", "gemini")

_PROVIDER_KEYS = {
    "openai": "OPENAI_API_KEY",
    "groq": "GROQ_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


def _determine_provider(preferred: str) -> str:
    if preferred != "auto":
        if os.getenv(_PROVIDER_KEYS.get(preferred, "")):
            return preferred
        print(
            f"[context] provider={preferred} requested but its key is not set, using auto",
            file=sys.stderr,
        )
    for provider in ("openai", "groq", "gemini"):
        if os.getenv(_PROVIDER_KEYS[provider]):
            return provider
    raise ProviderError(
        "No API key available. Set OPENAI_API_KEY, GROQ_API_KEY or GEMINI_API_KEY.",
        {"providers": list(_PROVIDER_KEYS)},
    )


def build_client(mode: str = "live", provider: str = "auto", mock_scenario: str = "default") -> GenerationClient:
    if mode == "mock":
        return MockAdapter(scenario=mock_scenario)
    resolved = _determine_provider(provider)
    print(f"[context] provider={resolved} client initialized", file=sys.stderr)
    if resolved == "openai":
        return OpenAIAdapter()
    if resolved == "groq":
        return OpenAIAdapter.for_groq()
    return GeminiAdapter()


@dataclass
class ServerContext:
    mode: str = "live"
    provider: str = "auto"
    mock_scenario: str = "default"
    output_root: Optional[Path] = None
    client_factory: Optional[Callable[[], GenerationClient]] = None
    writer: BacklogFileWriter = field(default_factory=BacklogFileWriter)
    validators: ValidatorFactory = field(default_factory=lambda: default_validators)
    ids: RequestIdAllocator = field(default_factory=RequestIdAllocator)
    _client: Optional[GenerationClient] = field(default=None, repr=False)

    def client(self) -> GenerationClient:
        if self._client is None:
            if self.client_factory is not None:
                self._client = self.client_factory()
            else:
                self._client = build_client(self.mode, self.provider, self.mock_scenario)
        return self._client

    def with_provider(self, provider: str, mode: Optional[str] = None) -> "ServerContext":
        return replace(self, provider=provider, mode=mode or self.mode, _client=None)

    def resolve_output_path(self, output_path: Optional[str]) -> Path:
        candidate = output_path or self.output_root or os.getenv("AGILE_PLANNER_OUTPUT_ROOT") or Path.cwd()
        return Path(candidate).expanduser().resolve()
