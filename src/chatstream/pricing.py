"""Per-token pricing for supported provider models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from chatstream.message import Cost


class ModelPricing(BaseModel):
    """USD prices per 1,000 tokens for one model."""

    model_config = ConfigDict(frozen=True)

    input_per_1k: float
    output_per_1k: float


def _free(*models: str) -> dict[str, ModelPricing]:
    return {m: ModelPricing(input_per_1k=0.0, output_per_1k=0.0) for m in models}


DEFAULT_PRICES: dict[str, dict[str, ModelPricing]] = {
    "groq": _free(
        "llama-3.3-70b-versatile",
        "llama-3.1-405b-reasoning",
        "llama-3.1-70b-versatile",
        "llama-3.1-8b-instant",
        "deepseek-r1-distill-llama-70b",
        "meta-llama/llama-4-maverick-17b-128e-instruct",
        "meta-llama/llama-4-scout-17b-16e-instruct",
        "llama3-groq-70b-8192-tool-use-preview",
        "llama3-groq-8b-8192-tool-use-preview",
        "mixtral-8x7b-32768",
        "gemma2-9b-it",
        "gemma-7b-it",
    ),
    "google": {
        "gemini-1.5-pro": ModelPricing(input_per_1k=0.00125, output_per_1k=0.005),
        "gemini-1.5-flash": ModelPricing(input_per_1k=0.000075, output_per_1k=0.0003),
        "gemini-2.0-flash-exp": ModelPricing(input_per_1k=0.0, output_per_1k=0.0),
    },
    "anthropic": {
        "claude-3-5-sonnet-20241022": ModelPricing(input_per_1k=0.003, output_per_1k=0.015),
        "claude-3-5-sonnet-20240620": ModelPricing(input_per_1k=0.003, output_per_1k=0.015),
        "claude-3-5-haiku-20241022": ModelPricing(input_per_1k=0.00025, output_per_1k=0.00125),
        "claude-3-opus-20240229": ModelPricing(input_per_1k=0.015, output_per_1k=0.075),
        "claude-3-sonnet-20240229": ModelPricing(input_per_1k=0.003, output_per_1k=0.015),
        "claude-3-haiku-20240307": ModelPricing(input_per_1k=0.00025, output_per_1k=0.00125),
    },
    "openai": {
        "gpt-4o": ModelPricing(input_per_1k=0.005, output_per_1k=0.015),
        "gpt-4o-mini": ModelPricing(input_per_1k=0.00015, output_per_1k=0.0006),
        "gpt-4-turbo": ModelPricing(input_per_1k=0.01, output_per_1k=0.03),
        "gpt-4": ModelPricing(input_per_1k=0.03, output_per_1k=0.06),
        "gpt-3.5-turbo": ModelPricing(input_per_1k=0.0015, output_per_1k=0.002),
    },
}


class PricingTable:
    """Looks up model prices and turns token counts into a :class:`Cost`.

    Instances are callable with the pricing-collaborator signature, so a
    table can be handed straight to :class:`chatstream.finalizer.UsageFinalizer`.
    """

    def __init__(self, prices: dict[str, dict[str, ModelPricing]] | None = None):
        self._prices = DEFAULT_PRICES if prices is None else prices

    def lookup(self, provider: str | None, model: str | None) -> ModelPricing | None:
        if not provider or not model:
            return None
        return self._prices.get(provider, {}).get(model)

    def calculate_cost(
        self,
        provider: str | None,
        model: str | None,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
    ) -> Cost | None:
        pricing = self.lookup(provider, model)
        if pricing is None:
            return None
        input_cost = prompt_tokens / 1000 * pricing.input_per_1k
        output_cost = completion_tokens / 1000 * pricing.output_per_1k
        return Cost(
            input_cost=round(input_cost, 6),
            output_cost=round(output_cost, 6),
            total_cost=round(input_cost + output_cost, 6),
            currency="USD",
        )

    __call__ = calculate_cost

    def is_free_provider(self, provider: str) -> bool:
        models = self._prices.get(provider)
        if not models:
            return False
        return all(
            p.input_per_1k == 0 and p.output_per_1k == 0 for p in models.values()
        )


_default_table = PricingTable()


def calculate_cost(
    provider: str | None,
    model: str | None,
    prompt_tokens: int = 0,
    completion_tokens: int = 0,
) -> Cost | None:
    """Cost of a completion under the default price table."""
    return _default_table.calculate_cost(
        provider, model, prompt_tokens, completion_tokens
    )


def format_cost(cost: float, currency: str = "USD") -> str:
    if cost == 0:
        return "Free"
    if cost < 0.000001:
        return "< $0.000001"
    symbol = "$" if currency == "USD" else f"{currency} "
    return f"{symbol}{cost:,.6f}"
