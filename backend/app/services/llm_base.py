"""
Prompt & Pause Backend — Abstract LLM Service Interface
========================================================

What:  Abstract base class for the text-generation provider.
How:   Concrete providers implement generate_text() and health_check().
Who:   PromptService (daily prompts) and DigestService (weekly insights)
       depend on this interface, never on a concrete SDK.
"""

from abc import ABC, abstractmethod


class LLMService(ABC):
    """
    Interface for AI text generation.

    Contract:
        - generate_text() returns the model's plain-text answer, stripped
        - Implementations handle their own retry logic and error translation
        - Provider errors are wrapped in LLMServiceError
        - An open circuit raises CircuitBreakerOpenError immediately
    """

    #: Identifier stored alongside generated content (e.g. prompts_history.ai_provider)
    provider_name: str = "unknown"

    #: Model identifier stored alongside generated content
    model_name: str = ""

    @abstractmethod
    async def generate_text(self, system_prompt: str, user_prompt: str) -> str:
        """
        Generate a completion for the given instructions and user context.

        Returns:
            The generated text. Never None; empty output raises LLMServiceError.

        Raises:
            LLMServiceError: The provider failed after all retries, or answered
                with nothing usable.
            CircuitBreakerOpenError: Recent failures have opened the circuit.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight connectivity check that does not consume generation quota."""
        ...
