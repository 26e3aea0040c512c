"""
Provider-agnostic chat model factory for the slot-ranking oracle.

The oracle is off unless both are set:
  LLM_ENABLED=true
  LLM_API_KEY=your-key
Pick the backend with LLM_PROVIDER=gemini | openai | groq and LLM_MODEL.
"""

from collections.abc import Callable

from langchain_core.language_models import BaseChatModel

from app.config import Settings, get_settings

# Rankings are a short structured list
RANKING_MAX_TOKENS = 800


def _gemini(settings: Settings) -> BaseChatModel:
    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=settings.LLM_MODEL,
        google_api_key=settings.LLM_API_KEY,
        temperature=settings.LLM_TEMPERATURE,
        max_output_tokens=RANKING_MAX_TOKENS,
    )


def _openai(settings: Settings) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=settings.LLM_MODEL,
        api_key=settings.LLM_API_KEY,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=RANKING_MAX_TOKENS,
    )


def _groq(settings: Settings) -> BaseChatModel:
    from langchain_groq import ChatGroq

    return ChatGroq(
        model=settings.LLM_MODEL,
        api_key=settings.LLM_API_KEY,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=RANKING_MAX_TOKENS,
    )


# Provider packages are optional extras, imported only when selected
PROVIDERS: dict[str, Callable[[Settings], BaseChatModel]] = {
    "gemini": _gemini,
    "openai": _openai,
    "groq": _groq,
}


def llm_available() -> bool:
    """True when the oracle is switched on and has credentials."""
    settings = get_settings()
    return settings.LLM_ENABLED and bool(settings.LLM_API_KEY)


def create_llm() -> BaseChatModel:
    """Chat model for the configured provider.

    Raises:
        ValueError: If provider is not supported.
    """
    settings = get_settings()
    builder = PROVIDERS.get(settings.LLM_PROVIDER.lower())
    if builder is None:
        raise ValueError(
            f"Unknown LLM provider: '{settings.LLM_PROVIDER}'. "
            f"Supported: {', '.join(PROVIDERS)}"
        )
    return builder(settings)
