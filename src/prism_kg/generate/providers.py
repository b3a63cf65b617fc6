"""AI provider catalogue, quota bookkeeping and fallback execution.

A ``ProviderContext`` is created by the caller and passed into the
generation path; there is no process-wide manager. It builds an ordered
plan of (provider, model) candidates and walks it in an explicit loop,
recording every attempt:

- auto mode: each provider's first heavy model with quota left, then each
  provider's first standard model with quota left, in catalogue order
- manual mode: exactly the selected provider/model

Quota is an estimate in tokens, decremented after each successful call
and persisted to YAML between runs.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import yaml
from pydantic import BaseModel

from prism_kg.generate.llm_client import LLMClient
from prism_kg.generate.prompts import SYSTEM_MESSAGE
from prism_kg.generate.sanitize import sanitize_graph_data
from prism_kg.graph.models import GraphData, Provenance

if TYPE_CHECKING:
    from prism_kg.config import PrismConfig

logger = logging.getLogger(__name__)

ModelTier = Literal["heavy", "standard"]
ProviderStatus = Literal["ACTIVE", "EXHAUSTED"]


class AIModel(BaseModel):
    """One model offered by a provider, with its remaining token budget."""

    id: str
    name: str
    tier: ModelTier
    remaining_tokens: int
    max_tokens: int

    @property
    def available(self) -> bool:
        return self.remaining_tokens > 0


class ProviderStats(BaseModel):
    name: str
    active_model: str
    total_remaining: int
    total_max: int
    status: ProviderStatus
    models: list[AIModel]


class Provider(BaseModel):
    """A model vendor reachable through LiteLLM under ``prefix``."""

    name: str
    prefix: str  # LiteLLM provider prefix, e.g. "gemini", "xai"
    models: list[AIModel]

    def get_model(self, model_id: str) -> AIModel | None:
        return next((m for m in self.models if m.id == model_id), None)

    def first_available(self, tier: ModelTier) -> AIModel | None:
        return next((m for m in self.models if m.tier == tier and m.available), None)

    def default_model(self) -> AIModel | None:
        return next((m for m in self.models if m.tier == "standard"), None) or (
            self.models[0] if self.models else None
        )

    def litellm_model(self, model_id: str) -> str:
        return f"{self.prefix}/{model_id}"


def default_providers() -> list[Provider]:
    """Fresh copy of the built-in catalogue, in fallback order."""

    def _model(model_id: str, name: str, tier: ModelTier, budget: int) -> AIModel:
        return AIModel(id=model_id, name=name, tier=tier, remaining_tokens=budget, max_tokens=budget)

    return [
        Provider(name="Gemini", prefix="gemini", models=[
            _model("gemini-2.0-flash-thinking-exp-1219", "Flash Thinking (2.0)", "heavy", 50_000),
            _model("gemini-2.5-flash", "Flash 2.5", "standard", 150_000),
        ]),
        Provider(name="OpenAI", prefix="openai", models=[
            _model("gpt-4o", "GPT-4o", "heavy", 80_000),
            _model("gpt-4o-mini", "GPT-4o Mini", "standard", 200_000),
        ]),
        Provider(name="Grok", prefix="xai", models=[
            _model("grok-2-latest", "Grok 2", "heavy", 60_000),
            _model("grok-beta", "Grok Beta", "standard", 120_000),
        ]),
        Provider(name="Claude", prefix="anthropic", models=[
            _model("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", "heavy", 75_000),
            _model("claude-3-5-haiku-20241022", "Claude 3.5 Haiku", "standard", 180_000),
        ]),
        Provider(name="DeepSeek", prefix="deepseek", models=[
            _model("deepseek-chat", "DeepSeek V3", "standard", 100_000),
        ]),
    ]


@dataclass
class Candidate:
    provider: Provider
    model: AIModel

    def __str__(self) -> str:
        return f"{self.provider.name}::{self.model.id}"


@dataclass
class Attempt:
    """Record of one try against one candidate."""

    provider: str
    model: str
    success: bool
    error: str | None = None
    tokens_used: int = 0


@dataclass
class GenerationOutcome:
    data: GraphData
    attempts: list[Attempt] = field(default_factory=list)

    @property
    def provider(self) -> str:
        return self.attempts[-1].provider

    @property
    def model(self) -> str:
        return self.attempts[-1].model


class GenerationError(RuntimeError):
    """No candidate in the plan produced a usable graph."""

    def __init__(self, message: str, attempts: list[Attempt] | None = None):
        super().__init__(message)
        self.attempts = attempts or []


ClientFactory = Callable[[str], LLMClient]
AttemptHook = Callable[[int, Candidate], None]


class ProviderContext:
    """Provider settings, quota state and the fallback loop for one graph session."""

    def __init__(
        self,
        providers: list[Provider] | None = None,
        auto_mode: bool = True,
        selected_provider: str | None = None,
        selected_model: str | None = None,
        config: "PrismConfig | None" = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.providers = providers if providers is not None else default_providers()
        self.auto_mode = auto_mode
        self.selected_provider = selected_provider
        self.selected_model = selected_model
        self.config = config
        self.history: list[Attempt] = []
        self._active: dict[str, str] = {}
        self._client_factory = client_factory or self._default_client

    @classmethod
    def from_config(cls, config: "PrismConfig", **kwargs) -> "ProviderContext":
        """Build a context from settings, restoring persisted quota if present."""
        context = cls(
            auto_mode=config.auto_mode,
            selected_provider=config.selected_provider,
            selected_model=config.selected_model,
            config=config,
            **kwargs,
        )
        if config.quota_path.exists():
            context.load_quota(config.quota_path)
        return context

    def _default_client(self, model: str) -> LLMClient:
        if self.config is None:
            return LLMClient(model=model)
        return LLMClient(model=model, rpm=self.config.rpm, temperature=self.config.temperature)

    def get_provider(self, name: str) -> Provider | None:
        lowered = name.lower()
        return next(
            (p for p in self.providers if p.name.lower() == lowered or p.prefix == lowered),
            None,
        )

    # ------------------------------------------------------------------
    # Planning and execution
    # ------------------------------------------------------------------

    def build_plan(self) -> list[Candidate]:
        """Ordered candidates to try for the next generation call."""
        plan: list[Candidate] = []

        if not self.auto_mode:
            provider = self.get_provider(self.selected_provider or "")
            if provider is None:
                return plan
            model = (
                provider.get_model(self.selected_model)
                if self.selected_model
                else provider.default_model()
            )
            if model is not None:
                plan.append(Candidate(provider, model))
            return plan

        for tier in ("heavy", "standard"):
            for provider in self.providers:
                model = provider.first_available(tier)
                if model is not None:
                    plan.append(Candidate(provider, model))
        return plan

    def generate(self, prompt: str, on_attempt: AttemptHook | None = None) -> GenerationOutcome:
        """Run ``prompt`` through the plan until one candidate returns a graph.

        Args:
            prompt: Generation prompt
            on_attempt: Called with (index, candidate) before each try

        Returns:
            GenerationOutcome with the sanitized graph and every attempt made

        Raises:
            GenerationError: If the plan is empty or every candidate fails
        """
        plan = self.build_plan()
        if not plan:
            raise GenerationError("No available AI providers match the configuration.")

        attempts: list[Attempt] = []
        for index, candidate in enumerate(plan):
            if on_attempt is not None:
                on_attempt(index, candidate)
            logger.info(f"Engaging {candidate}")
            self._active[candidate.provider.name] = candidate.model.id

            try:
                data, tokens = self._run_candidate(candidate, prompt)
            except (RuntimeError, ValueError) as e:
                logger.warning(f"{candidate} failed: {e}. Falling back...")
                attempt = Attempt(candidate.provider.name, candidate.model.id, False, error=str(e))
                attempts.append(attempt)
                self.history.append(attempt)
                continue

            attempt = Attempt(candidate.provider.name, candidate.model.id, True, tokens_used=tokens)
            attempts.append(attempt)
            self.history.append(attempt)
            self._inject_provenance(data, candidate)
            return GenerationOutcome(data=data, attempts=attempts)

        raise GenerationError("All AI pathways failed.", attempts)

    def _run_candidate(self, candidate: Candidate, prompt: str) -> tuple[GraphData, int]:
        provider, model = candidate.provider, candidate.model
        if not model.available:
            raise ValueError(f"{provider.name} model {model.name} quota exceeded")
        if self.config is not None and not self.config.has_api_key(provider.prefix):
            raise ValueError(f"No API key configured for {provider.name}")

        client = self._client_factory(provider.litellm_model(model.id))
        raw = client.call_json(prompt, system_message=SYSTEM_MESSAGE)
        data = sanitize_graph_data(raw)
        if not data.entities:
            raise ValueError(f"{provider.name} returned no usable entities")

        tokens = client.last_call_tokens
        model.remaining_tokens = max(0, model.remaining_tokens - tokens)
        return data, tokens

    @staticmethod
    def _inject_provenance(data: GraphData, candidate: Candidate) -> None:
        timestamp = datetime.now(UTC)
        for entity in data.entities:
            if entity.provenance is None:
                entity.provenance = Provenance(
                    provider=candidate.provider.name,
                    model=candidate.model.id,
                    timestamp=timestamp,
                )

    # ------------------------------------------------------------------
    # Quota bookkeeping
    # ------------------------------------------------------------------

    def provider_stats(self) -> list[ProviderStats]:
        stats = []
        for provider in self.providers:
            total_remaining = sum(m.remaining_tokens for m in provider.models)
            default = provider.models[0].id if provider.models else "unknown"
            stats.append(ProviderStats(
                name=provider.name,
                active_model=self._active.get(provider.name, default),
                total_remaining=total_remaining,
                total_max=sum(m.max_tokens for m in provider.models),
                status="ACTIVE" if total_remaining > 0 else "EXHAUSTED",
                models=[m.model_copy() for m in provider.models],
            ))
        return stats

    def reset_cycle(self) -> None:
        """Restore every model's quota to its maximum."""
        for provider in self.providers:
            for model in provider.models:
                model.remaining_tokens = model.max_tokens

    def save_quota(self, path: Path) -> None:
        """Write remaining quota per provider/model to YAML."""
        data = {
            provider.name: {m.id: m.remaining_tokens for m in provider.models}
            for provider in self.providers
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        logger.debug(f"Saved quota state to {path}")

    def load_quota(self, path: Path) -> None:
        """Restore remaining quota from YAML. Unknown providers/models are ignored."""
        if not path.exists():
            return
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        for provider in self.providers:
            saved = data.get(provider.name) or {}
            for model in provider.models:
                if model.id in saved:
                    try:
                        remaining = int(saved[model.id])
                    except (TypeError, ValueError):
                        logger.warning(f"Ignoring bad quota value for {provider.name}::{model.id}")
                        continue
                    model.remaining_tokens = max(0, min(model.max_tokens, remaining))
