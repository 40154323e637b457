"""
LLM Gateway with Model Fallback and Retry.

PURPOSE:
========
Provides the single entry point through which pipeline stages reach a
language model. Stages never talk to a provider directly, and retry
policy lives nowhere else.

FALLBACK CHAIN (DETERMINISTIC):
================================
Models are tried in the configured order (LLM_MODELS). For each model:

1. Call the model through litellm.
2. On a transient failure (HTTP 429, 408, 5xx, or a transport error
   without a status code) wait with exponential backoff and retry, up to
   LLM_MAX_ATTEMPTS calls per model.
3. When the attempts for a model are used up, fall through to the next.

A non-retryable failure (any other 4xx, e.g. a bad request or an invalid
key) is raised immediately as LLMRequestError.

GRACEFUL FAILURE:
=================
When every model is exhausted the gateway raises one normalized
LLMUnavailableError listing every attempt. Callers never see a raw
provider exception.

USAGE:
======
    gateway = create_llm_gateway()
    response = await gateway.invoke(prompt, purpose="infer_entities")
    print(response.content, response.model, response.cost)
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from litellm import acompletion, completion_cost

from configs import (
    LLM_BACKOFF_BASE_SECONDS,
    LLM_BACKOFF_MAX_SECONDS,
    LLM_MAX_ATTEMPTS,
    LLM_MODELS,
    LLM_TEMPERATURE,
    MAX_LLM_TOKENS,
    VERBOSE,
)

logger = logging.getLogger("lakeschema.llm")


# ============================================================
# DATA MODELS
# ============================================================

@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    model: str
    tokens_used: int = 0
    cost: float = 0.0
    attempts: int = 1
    fallback_occurred: bool = False
    fallback_reason: Optional[str] = None


class LLMError(Exception):
    """Base exception for gateway errors."""
    pass


class TransientLLMError(LLMError):
    """A failure worth retrying (server error, timeout, transport)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(TransientLLMError):
    """Raised when a provider answers 429."""
    pass


class LLMRequestError(LLMError):
    """Non-retryable failure: the request itself was rejected."""

    def __init__(self, message: str, status_code: Optional[int] = None, model: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.model = model


class LLMUnavailableError(LLMError):
    """Every candidate model was exhausted."""

    def __init__(self, message: str, attempts: List[Dict[str, Any]]):
        super().__init__(message)
        self.attempts = attempts


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

def _status_code_of(error: Exception) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    text = str(error).lower()
    if "429" in text or "rate limit" in text or "resource_exhausted" in text:
        return 429
    return None


def classify_error(error: Exception) -> LLMError:
    """Map a provider exception onto the gateway's error types."""
    if isinstance(error, LLMError):
        return error
    status = _status_code_of(error)
    message = f"{type(error).__name__}: {error}"
    if status == 429:
        return RateLimitError(message, status)
    if status is None or status == 408 or status >= 500:
        return TransientLLMError(message, status)
    return LLMRequestError(message, status)


# ============================================================
# GATEWAY INTERFACE
# ============================================================

class ModelGateway(ABC):
    """
    Interface every stage depends on. Tests substitute scripted gateways;
    production uses LLMGateway.
    """

    @abstractmethod
    async def invoke(self, prompt: str, purpose: str = "") -> LLMResponse:
        """
        Send one prompt and return the reply.

        Raises:
            LLMRequestError: the request was rejected (non-retryable)
            LLMUnavailableError: every candidate model was exhausted
        """
        pass


CompletionFn = Callable[..., Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[None]]


class LLMGateway(ModelGateway):
    """
    litellm-backed gateway with an ordered model fallback chain.

    completion_fn and sleep are injectable so the retry policy can be
    exercised without network access or real delays.
    """

    def __init__(
        self,
        models: Optional[List[str]] = None,
        max_attempts: int = LLM_MAX_ATTEMPTS,
        backoff_base: float = LLM_BACKOFF_BASE_SECONDS,
        backoff_max: float = LLM_BACKOFF_MAX_SECONDS,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = MAX_LLM_TOKENS,
        completion_fn: Optional[CompletionFn] = None,
        sleep: Optional[SleepFn] = None,
        verbose: bool = VERBOSE,
    ):
        self.models = list(models if models is not None else LLM_MODELS)
        if not self.models:
            raise ValueError("LLMGateway needs at least one model")
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._completion = completion_fn or acompletion
        self._sleep = sleep or asyncio.sleep
        self.verbose = verbose

        # Statistics
        self.stats: Dict[str, Any] = {
            "total_calls": 0,
            "retries": 0,
            "fallbacks": 0,
            "failures": 0,
            "model_calls": {model: 0 for model in self.models},
        }
        self.last_attempts: List[Dict[str, Any]] = []

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number attempt+1 (attempt is zero-based)."""
        return min(self.backoff_base * (2 ** attempt), self.backoff_max)

    async def invoke(self, prompt: str, purpose: str = "") -> LLMResponse:
        self.stats["total_calls"] += 1
        attempts: List[Dict[str, Any]] = []
        self.last_attempts = attempts
        label = f" [{purpose}]" if purpose else ""

        for index, model in enumerate(self.models):
            for attempt in range(self.max_attempts):
                self._log(f"→ {model}{label} attempt {attempt + 1}/{self.max_attempts}")
                try:
                    raw = await self._completion(
                        model=model,
                        messages=[{"role": "user", "content": prompt}],
                        temperature=self.temperature,
                        max_tokens=self.max_tokens,
                    )
                    response = self._build_response(raw, model, attempts_for_model=attempt + 1)
                except Exception as e:
                    error = classify_error(e)
                    attempts.append({
                        "model": model,
                        "attempt": attempt + 1,
                        "status_code": getattr(error, "status_code", None),
                        "error": str(error),
                    })
                    if isinstance(error, LLMRequestError):
                        error.model = model
                        self.stats["failures"] += 1
                        logger.error(f"✗ {model}{label} rejected the request: {error}")
                        raise error from e

                    logger.warning(f"⚠️ {model}{label} failed (attempt {attempt + 1}): {error}")
                    if attempt + 1 < self.max_attempts:
                        self.stats["retries"] += 1
                        await self._sleep(self.backoff_delay(attempt))
                    continue

                self.stats["model_calls"][model] = self.stats["model_calls"].get(model, 0) + 1
                if index > 0:
                    response.fallback_occurred = True
                    response.fallback_reason = attempts[-1]["error"] if attempts else None
                self._log(f"✓ {model}{label} answered ({response.tokens_used} tokens)")
                return response

            if index + 1 < len(self.models):
                self.stats["fallbacks"] += 1
                logger.warning(f"⚠️ {model} exhausted, falling back to {self.models[index + 1]}")

        self.stats["failures"] += 1
        summary = "\n".join(
            f"  • {a['model']} (attempt {a['attempt']}): {a['error']}" for a in attempts
        )
        raise LLMUnavailableError(
            f"All models unavailable after {len(attempts)} attempt(s):\n{summary}",
            attempts,
        )

    def _build_response(self, raw: Any, model: str, attempts_for_model: int) -> LLMResponse:
        """
        Raises:
            TransientLLMError: the reply carries no message to read
        """
        try:
            content = raw.choices[0].message.content or ""
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise TransientLLMError(f"Malformed response from {model}: {type(e).__name__}: {e}") from e

        usage = getattr(raw, "usage", None)
        return LLMResponse(
            content=content,
            model=model,
            tokens_used=getattr(usage, "total_tokens", 0) or 0,
            cost=self._response_cost(raw),
            attempts=attempts_for_model,
        )

    def _response_cost(self, raw: Any) -> float:
        hidden = getattr(raw, "_hidden_params", None) or {}
        if isinstance(hidden, dict) and hidden.get("response_cost") is not None:
            return float(hidden["response_cost"])
        try:
            return float(completion_cost(completion_response=raw))
        except Exception as e:
            # Free and self-hosted models have no price entry
            logger.debug(f"No cost information for response: {e}")
            return 0.0

    def get_stats(self) -> Dict[str, Any]:
        """Get usage statistics."""
        return {
            **self.stats,
            "fallback_chain": " → ".join(self.models) + " → [Unavailable]",
            "last_attempts": self.last_attempts,
        }

    def _log(self, message: str):
        """Log at INFO in verbose mode, DEBUG otherwise."""
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message)


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def create_llm_gateway(models: Optional[List[str]] = None, verbose: bool = VERBOSE) -> LLMGateway:
    """Create a gateway over the configured (or given) model chain."""
    return LLMGateway(models=models, verbose=verbose)
