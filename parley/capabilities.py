"""
Model capability classifier.

Backend model generations accept mutually incompatible parameter sets:
  legacy     exact names from the older chat generation  → max_tokens, temperature
  modern     everything else                              → max_completion_tokens, temperature
  reasoning  o-series and gpt-5 prefixes                  → max_completion_tokens,
                                                            reasoning_effort, verbosity (gpt-5 only)

Request params are shaped here before the request body is built.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from parley.errors import ValidationError

LEGACY_MODELS = frozenset({"gpt-4", "gpt-4-turbo", "gpt-3.5-turbo"})
REASONING_PREFIXES = ("o1", "o3", "o4", "gpt-5")
# Newest reasoning sub-family; the only one that takes a verbosity control
VERBOSITY_PREFIXES = ("gpt-5",)

REASONING_EFFORTS = ("minimal", "low", "medium", "high")
VERBOSITY_LEVELS = ("low", "medium", "high")
DEFAULT_REASONING_EFFORT = "medium"
DEFAULT_VERBOSITY = "medium"


class ModelClass(str, Enum):
    LEGACY = "legacy"
    MODERN = "modern"
    REASONING = "reasoning"


@dataclass(frozen=True)
class CapabilityPolicy:
    """Which request parameters a model class accepts."""
    model_class: ModelClass
    token_limit_field: str
    sends_temperature: bool
    sends_reasoning_effort: bool
    sends_verbosity: bool


def classify(model: str) -> ModelClass:
    if model in LEGACY_MODELS:
        return ModelClass.LEGACY
    if model.startswith(REASONING_PREFIXES):
        return ModelClass.REASONING
    return ModelClass.MODERN


def policy_for(model: str) -> CapabilityPolicy:
    model_class = classify(model)
    if model_class is ModelClass.LEGACY:
        return CapabilityPolicy(model_class, "max_tokens", True, False, False)
    if model_class is ModelClass.REASONING:
        return CapabilityPolicy(
            model_class,
            "max_completion_tokens",
            sends_temperature=False,
            sends_reasoning_effort=True,
            sends_verbosity=model.startswith(VERBOSITY_PREFIXES),
        )
    return CapabilityPolicy(model_class, "max_completion_tokens", True, False, False)


def request_params(
    model: str,
    max_tokens: int = 2000,
    temperature: float = 0.7,
    reasoning_effort: str | None = None,
    verbosity: str | None = None,
) -> dict:
    """
    Build the model-dependent part of a completion request body.
    Controls the model does not accept are dropped, not sent.
    """
    if reasoning_effort is not None and reasoning_effort not in REASONING_EFFORTS:
        raise ValidationError(
            f"Invalid reasoning effort {reasoning_effort!r}; expected one of {', '.join(REASONING_EFFORTS)}"
        )
    if verbosity is not None and verbosity not in VERBOSITY_LEVELS:
        raise ValidationError(
            f"Invalid verbosity {verbosity!r}; expected one of {', '.join(VERBOSITY_LEVELS)}"
        )

    policy = policy_for(model)
    params: dict = {policy.token_limit_field: max_tokens}
    if policy.sends_temperature:
        params["temperature"] = temperature
    if policy.sends_reasoning_effort:
        params["reasoning_effort"] = reasoning_effort or DEFAULT_REASONING_EFFORT
    if policy.sends_verbosity:
        params["verbosity"] = verbosity or DEFAULT_VERBOSITY
    return params
