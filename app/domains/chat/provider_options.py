"""Provider-specific request options built from the UI model parameters.

Each builder is a pure function of ``(ModelParams, LLMInfo)`` returning the
options for its own provider only. Adding a provider means adding one entry to
``PROVIDER_OPTION_BUILDERS``.
"""

from collections.abc import Callable
from typing import Any

from app.domains.ai.registry import LLMFeature, LLMInfo, LLMProvider
from app.schemas.chat import ModelParams

ProviderOptions = dict[str, Any]
OptionBuilder = Callable[[ModelParams, LLMInfo], ProviderOptions]


def _openai_options(params: ModelParams, llm_info: LLMInfo) -> ProviderOptions:
    if params.openai is None or not params.openai.reasoning_effort:
        return {}
    if not llm_info.has_feature(LLMFeature.REASONING_EFFORT):
        return {}
    return {"reasoningEffort": params.openai.reasoning_effort}


def _anthropic_options(params: ModelParams, llm_info: LLMInfo) -> ProviderOptions:
    if params.anthropic is None or params.anthropic.thinking is None:
        return {}
    if not llm_info.has_feature(LLMFeature.REASONING):
        return {}
    thinking: dict[str, Any] = {"type": params.anthropic.thinking.type or "enabled"}
    if params.anthropic.thinking.budget_tokens:
        thinking["budgetTokens"] = params.anthropic.thinking.budget_tokens
    return {"thinking": thinking}


def _google_options(params: ModelParams, llm_info: LLMInfo) -> ProviderOptions:
    if params.google is None:
        return {}
    thinking_config: dict[str, Any] = {}
    if params.google.include_thoughts is not None:
        thinking_config["includeThoughts"] = params.google.include_thoughts
    if params.google.thinking_budget:
        thinking_config["thinkingBudget"] = params.google.thinking_budget
    return {"thinkingConfig": thinking_config}


def _openrouter_options(params: ModelParams, llm_info: LLMInfo) -> ProviderOptions:
    if params.openrouter is None or params.openrouter.reasoning is None:
        return {}
    reasoning: dict[str, Any] = {}
    # max_tokens suits Anthropic and Gemini thinking models, effort the o-series and Grok
    if params.openrouter.reasoning.max_tokens:
        reasoning["max_tokens"] = params.openrouter.reasoning.max_tokens
    if params.openrouter.reasoning.effort:
        reasoning["effort"] = params.openrouter.reasoning.effort
    return {"reasoning": reasoning}


def _no_options(params: ModelParams, llm_info: LLMInfo) -> ProviderOptions:
    return {}


PROVIDER_OPTION_BUILDERS: dict[LLMProvider, OptionBuilder] = {
    LLMProvider.OPENAI: _openai_options,
    LLMProvider.AZURE: _openai_options,
    LLMProvider.ANTHROPIC: _anthropic_options,
    LLMProvider.GOOGLE: _google_options,
    LLMProvider.OPENROUTER: _openrouter_options,
    LLMProvider.DEEPSEEK: _no_options,
    LLMProvider.XAI: _no_options,
}


def build_provider_options(
    provider: LLMProvider, params: ModelParams, llm_info: LLMInfo
) -> dict[str, ProviderOptions]:
    """Options keyed by provider name, or ``{}`` when nothing applies."""
    builder = PROVIDER_OPTION_BUILDERS.get(provider, _no_options)
    options = builder(params, llm_info)
    if not options:
        return {}
    return {provider.value: options}
