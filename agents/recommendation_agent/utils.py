"""
Utility functions for the recommendation agent.
"""

import logging
from typing import List, Optional

from config.settings import settings
from models.schemas import Candidate, TelemetrySnapshot
from utils.helpers import normalize_domain

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def get_generation_llm(
    llm_provider: str,
    max_tokens: int = 4000,
    temperature: float = 0.5,
    timeout: float = 180.0
):
    """
    Get LLM instance for recommendation generation.

    Args:
        llm_provider: Provider name (openai, claude, gemini, llama, grok, deepseek,
                      openrouter, cerebras, ollama)
        max_tokens: Maximum output tokens
        temperature: Sampling temperature
        timeout: Client-side request timeout in seconds

    Returns:
        LangChain chat model instance or None if provider not available
    """
    llm_provider = (llm_provider or "").lower()

    try:
        if llm_provider == "claude":
            if not settings.ANTHROPIC_API_KEY:
                logger.error("Anthropic API key not configured")
                return None
            from langchain_anthropic import ChatAnthropic
            return ChatAnthropic(
                model=settings.CLAUDE_MODEL,
                anthropic_api_key=settings.ANTHROPIC_API_KEY,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout
            )

        elif llm_provider == "openai":
            if not settings.OPENAI_API_KEY:
                logger.error("OpenAI API key not configured")
                return None
            from langchain_openai import ChatOpenAI
            return ChatOpenAI(
                model=settings.CHATGPT_MODEL,
                openai_api_key=settings.OPENAI_API_KEY,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout
            )

        elif llm_provider == "gemini":
            if not settings.GEMINI_API_KEY:
                logger.error("Gemini API key not configured")
                return None
            from langchain_google_genai import ChatGoogleGenerativeAI
            return ChatGoogleGenerativeAI(
                model=settings.GEMINI_MODEL,
                google_api_key=settings.GEMINI_API_KEY,
                temperature=temperature,
                max_output_tokens=max_tokens
            )

        elif llm_provider == "llama":
            if not settings.GROK_API_KEY:
                logger.error("Groq API key not configured")
                return None
            from langchain_groq import ChatGroq
            return ChatGroq(
                model=settings.GROQ_LLAMA_MODEL,
                groq_api_key=settings.GROK_API_KEY,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout
            )

        elif llm_provider in ("grok", "deepseek", "openrouter"):
            if not settings.OPEN_ROUTER_API_KEY:
                logger.error("OpenRouter API key not configured")
                return None
            model = {
                "grok": settings.OPENROUTER_GROK_MODEL,
                "deepseek": settings.OPENROUTER_DEEPSEEK_MODEL,
                "openrouter": settings.OPENROUTER_RECOMMENDATION_MODEL,
            }[llm_provider]
            from langchain_openai import ChatOpenAI
            return ChatOpenAI(
                model=model,
                openai_api_key=settings.OPEN_ROUTER_API_KEY,
                openai_api_base=OPENROUTER_BASE_URL,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout
            )

        elif llm_provider == "cerebras":
            if not settings.CEREBRAS_API_KEY:
                logger.error("Cerebras API key not configured")
                return None
            from langchain_openai import ChatOpenAI
            return ChatOpenAI(
                model=settings.CEREBRAS_MODEL,
                openai_api_key=settings.CEREBRAS_API_KEY,
                openai_api_base=settings.CEREBRAS_BASE_URL,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout
            )

        elif llm_provider == "ollama":
            from langchain_openai import ChatOpenAI
            return ChatOpenAI(
                model=settings.OLLAMA_MODEL,
                openai_api_key="ollama",
                openai_api_base=settings.OLLAMA_BASE_URL,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout
            )

        else:
            logger.error(f"Unknown LLM provider: {llm_provider}")
            return None

    except Exception as e:
        logger.error(f"Failed to initialize {llm_provider} LLM: {str(e)}")
        return None


def strip_code_fences(text: str) -> str:
    """Strip markdown code block markers wrapping a response."""
    result_text = (text or "").strip()
    if result_text.startswith("```"):
        if result_text.startswith("```json"):
            result_text = result_text[7:]
        else:
            result_text = result_text[3:]
        if result_text.endswith("```"):
            result_text = result_text[:-3]
        result_text = result_text.strip()
    return result_text


def attach_source_metrics(candidates: List[Candidate], snapshot: TelemetrySnapshot) -> List[Candidate]:
    """
    Copy the matching source's metrics onto each candidate and fill defaults.

    Candidates are mutated in place; the snapshot is only read.
    """
    metrics_by_domain = {source.domain: source for source in snapshot.sources}

    for candidate in candidates:
        source = metrics_by_domain.get(normalize_domain(candidate.citation_source))
        if source is not None:
            candidate.impact_score = round(source.impact_score, 1)
            candidate.mention_rate = round(source.mention_rate, 1)
            candidate.share_of_voice = round(source.share_of_voice, 1)
            candidate.sentiment = round(source.sentiment, 2)
            candidate.visibility_score = round(source.visibility)
            candidate.citation_count = source.citations

        candidate.explanation = candidate.explanation or candidate.reason or candidate.action
        candidate.focus_sources = candidate.focus_sources or candidate.citation_source
        candidate.content_focus = candidate.content_focus or candidate.action
        candidate.timeline = candidate.timeline or "2-4 weeks"

    return candidates


def sanitize_personalized(
    candidates: List[Candidate],
    templates: List[Candidate]
) -> List[Candidate]:
    """
    Constrain personalized cold-start items to what the templates allow.

    Sources are limited to owned-site or directories; anything else falls back
    to the matching template's source.
    """
    sanitized = []
    for index, candidate in enumerate(candidates):
        template: Optional[Candidate] = templates[index] if index < len(templates) else None
        if candidate.citation_source not in ("owned-site", "directories"):
            candidate.citation_source = template.citation_source if template else "owned-site"
        candidate.focus_sources = candidate.citation_source
        candidate.source = "cold_start_template"
        if not candidate.kpi:
            candidate.kpi = "Visibility Index"
        sanitized.append(candidate)
    return sanitized
