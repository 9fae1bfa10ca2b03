"""
Generation backends and the ordered fallback chain.

Each backend turns a GenerationRequest into raw text. The chain tries them
in order; every attempt is raced against a timeout, and a timed-out,
failed or empty attempt moves on to the next tier without retrying.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import List, Literal, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from agents.recommendation_agent.utils import get_generation_llm, strip_code_fences
from config.settings import settings
from models.schemas import GenerationOutput

logger = logging.getLogger(__name__)


class GenerationRequest(BaseModel):
    """A rendered request for one generation call."""
    system_instruction: str = Field(..., description="System message for the model")
    prompt: str = Field(..., description="Rendered prompt text")
    max_output_tokens: int = Field(4000, description="Maximum output size")
    temperature: float = Field(0.5, description="Sampling temperature")
    require_json: bool = Field(True, description="Ask the backend for structured JSON output")
    weight: Literal["light", "heavy"] = Field("heavy", description="Selects the timeout budget")
    timeout_seconds: Optional[float] = Field(None, description="Overrides the weight-based timeout")

    def resolved_timeout(self) -> float:
        if self.timeout_seconds is not None:
            return self.timeout_seconds
        if self.weight == "light":
            return float(settings.LIGHT_REQUEST_TIMEOUT)
        return float(settings.HEAVY_REQUEST_TIMEOUT)


class GenerationBackend(ABC):
    """One tier of the fallback chain."""

    name: str = "backend"

    @abstractmethod
    def generate(self, request: GenerationRequest) -> str:
        """Return raw text for the request. May raise; the chain handles it."""


class LangChainBackend(GenerationBackend):
    """Backend that calls a LangChain chat model for a configured provider."""

    def __init__(self, provider: str):
        self.name = provider

    def generate(self, request: GenerationRequest) -> str:
        llm = get_generation_llm(
            self.name,
            max_tokens=request.max_output_tokens,
            temperature=request.temperature,
            timeout=request.resolved_timeout()
        )
        if llm is None:
            raise RuntimeError(f"Could not initialize {self.name} LLM")

        system_instruction = request.system_instruction
        if request.require_json:
            system_instruction += " Respond only with valid JSON."

        messages = [
            SystemMessage(content=system_instruction),
            HumanMessage(content=request.prompt)
        ]
        response = llm.invoke(messages)
        content = response.content

        # Some providers return a list of content blocks
        if isinstance(content, list):
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return content or ""


def build_backend_chain(
    preferred: Optional[str] = None,
    chain: Optional[List[str]] = None
) -> List[GenerationBackend]:
    """
    Build the ordered backend list.

    Args:
        preferred: Subject-level preferred provider (tier 0), if any
        chain: Default chain (defaults to RECOMMENDATION_BACKEND_CHAIN)

    Returns:
        Backends in tier order, without duplicates
    """
    providers: List[str] = []
    for provider in ([preferred] if preferred else []) + list(chain or settings.RECOMMENDATION_BACKEND_CHAIN):
        provider = provider.lower().strip()
        if provider and provider not in providers:
            providers.append(provider)
    return [LangChainBackend(provider) for provider in providers]


def generate_with_fallback(
    backends: List[GenerationBackend],
    request: GenerationRequest,
    errors: Optional[List[str]] = None
) -> Optional[GenerationOutput]:
    """
    Try each backend in order until one returns non-empty text.

    A timed-out call is abandoned: its worker is left to finish in the
    background and its result is never read.

    Args:
        backends: Backends in tier order
        request: Request to send
        errors: Optional list that tier failures are appended to

    Returns:
        GenerationOutput from the first successful tier, or None if all failed
    """
    errors = errors if errors is not None else []
    timeout = request.resolved_timeout()

    for tier, backend in enumerate(backends):
        logger.info(f"🤖 Tier {tier}: calling {backend.name} (timeout {timeout:.0f}s)")
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"gen-{backend.name}")
        future = executor.submit(backend.generate, request)

        try:
            text = future.result(timeout=timeout)
        except FuturesTimeoutError:
            error_msg = f"Tier {tier} ({backend.name}) timed out after {timeout:.0f}s"
            errors.append(error_msg)
            logger.warning(f"⏱️  {error_msg}")
            continue
        except Exception as e:
            error_msg = f"Tier {tier} ({backend.name}) failed: {str(e)}"
            errors.append(error_msg)
            logger.warning(f"❌ {error_msg}")
            continue
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        text = strip_code_fences(text if isinstance(text, str) else "")
        if not text:
            error_msg = f"Tier {tier} ({backend.name}) returned empty output"
            errors.append(error_msg)
            logger.warning(f"⚠️  {error_msg}")
            continue

        logger.info(f"✓ Tier {tier} ({backend.name}) returned {len(text)} characters")
        return GenerationOutput(text=text, backend=backend.name, tier=tier)

    logger.error(f"❌ All {len(backends)} generation backends failed")
    return None
