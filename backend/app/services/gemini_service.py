"""
Prompt & Pause Backend — Google Gemini Service Implementation
==============================================================

What:  Concrete LLM service using Google Gemini for reflection prompts and
       weekly insights.
How:   Sends the system instructions + user context as one text request,
       with tenacity retries, a circuit breaker, and latency logging.
Who:   Module-level singleton used by PromptService and DigestService.

Failure handling:
    Each SDK call has a timeout and is retried by tenacity (exponential
    backoff with jitter). Once retries are exhausted the circuit breaker
    counts a failure; a tripped breaker makes the daily cron loop and
    request handlers skip Gemini instead of waiting on it.
"""

import logging
import time
import uuid
from typing import Optional

import google.generativeai as genai
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
)

from app.config import settings
from app.exceptions import LLMServiceError, CircuitBreakerOpenError
from app.services.llm_base import LLMService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Fails AI calls fast while Gemini is down.

    closed     calls pass; `failure_threshold` failures in a row trip it
    open       calls raise CircuitBreakerOpenError until `recovery_timeout`
               seconds have passed since the last failure
    half_open  one probe call; success closes, failure re-opens

    Shared by every request and the cron loop in a worker process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.opened_at: Optional[float] = None

    def cooldown_left(self) -> float:
        if self.opened_at is None:
            return 0.0
        return max(self.recovery_timeout - (time.monotonic() - self.opened_at), 0.0)

    def can_execute(self) -> bool:
        """True when a call may go out; raises CircuitBreakerOpenError while cooling down."""
        if self.state != self.OPEN:
            return True

        left = self.cooldown_left()
        if left > 0:
            raise CircuitBreakerOpenError(recovery_time=max(int(left), 1))

        logger.info("Gemini circuit half-open, sending a probe request")
        self.state = self.HALF_OPEN
        return True

    def record_success(self) -> None:
        if self.state != self.CLOSED:
            logger.info("Gemini circuit closed, provider recovered")
        self.state = self.CLOSED
        self.failure_count = 0
        self.opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1
        probe_failed = self.state == self.HALF_OPEN
        if probe_failed or self.failure_count >= self.failure_threshold:
            if self.state != self.OPEN:
                logger.warning(
                    "Gemini circuit open (%s, %d failures)",
                    "probe failed" if probe_failed else "threshold reached",
                    self.failure_count,
                )
            self.state = self.OPEN
            self.opened_at = time.monotonic()


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(LLMService):
    """
    Google Gemini implementation of LLMService.

    Error Handling Chain:
        API call fails → tenacity retries (N attempts with backoff)
        → All retries fail → record circuit breaker failure → LLMServiceError
        → Threshold reached → future calls rejected instantly (OPEN)
        → Recovery timeout → one test call (HALF_OPEN)
    """

    provider_name = "gemini"

    def __init__(self):
        if settings.gemini_api_key and settings.gemini_api_key != "your_gemini_api_key_here":
            genai.configure(api_key=settings.gemini_api_key)

        self.model_name = settings.gemini_model
        self.model = genai.GenerativeModel(settings.gemini_model)
        self.generation_config = {
            "temperature": settings.ai_temperature,
            "top_p": settings.ai_top_p,
            "max_output_tokens": settings.ai_max_output_tokens,
        }

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(settings.gemini_api_key) and settings.gemini_api_key != "your_gemini_api_key_here"

    async def generate_text(self, system_prompt: str, user_prompt: str) -> str:
        """
        Generate text with Gemini.

        Flow:
            1. Check circuit breaker → may raise CircuitBreakerOpenError
            2. Call Gemini with retry logic
            3. Record success/failure in circuit breaker
            4. Reject empty output with LLMServiceError

        Raises:
            CircuitBreakerOpenError: Circuit is open (too many recent failures)
            LLMServiceError: Gemini failed after all retry attempts, or
                returned no text
        """
        request_id = str(uuid.uuid4())[:8]

        if not self.is_configured:
            raise LLMServiceError(
                message="AI provider is not configured",
                context={"request_id": request_id, "provider": self.provider_name},
            )

        self.circuit_breaker.can_execute()

        try:
            result = await self._call_gemini_with_retry(system_prompt, user_prompt, request_id)
        except CircuitBreakerOpenError:
            raise
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Gemini generation failed after retries: %s",
                request_id,
                str(e),
            )
            raise LLMServiceError(
                message="AI generation failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={
                    "request_id": request_id,
                    "attempts": settings.retry_max_attempts,
                    "error_type": type(e).__name__,
                },
            )

        self.circuit_breaker.record_success()

        if not result:
            raise LLMServiceError(
                message="AI provider returned an empty response",
                context={"request_id": request_id},
            )
        return result

    @retry(
        # The SDK raises generic exceptions for API errors
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(
        self, system_prompt: str, user_prompt: str, request_id: str
    ) -> str:
        """
        Makes the actual Gemini API call. Only this call is retried; the
        circuit breaker check in generate_text() is not.
        """
        started = time.perf_counter()
        try:
            response = await self.model.generate_content_async(
                f"{system_prompt}\n\n{user_prompt}",
                generation_config=self.generation_config,
                request_options={"timeout": settings.ai_request_timeout},
            )
        except Exception as e:
            logger.warning(
                "[%s] Gemini call failed (%.0fms): %s",
                request_id, (time.perf_counter() - started) * 1000, e,
            )
            raise
        duration_ms = (time.perf_counter() - started) * 1000

        # .text raises ValueError when the candidate was blocked or is empty
        try:
            text = (response.text or "").strip()
        except ValueError:
            text = ""

        logger.info(
            "[%s] Gemini generation completed in %.0fms, %d chars",
            request_id,
            duration_ms,
            len(text),
        )
        return text

    async def health_check(self) -> bool:
        """Lists models to verify the API key and connectivity (no token cost)."""
        try:
            models = genai.list_models()
            model_names = [m.name for m in models]
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# Shared instance: the circuit breaker state must be shared across requests
gemini_service = GeminiService()
