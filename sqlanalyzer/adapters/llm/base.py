from abc import ABC, abstractmethod


class AbstractPromptable(ABC):
    """Interface for anything that turns a prompt into text."""

    @abstractmethod
    def prompt(
        self,
        input: str,
        model: str,
        credential: str,
        temperature: float,
    ) -> str:
        """Generate a response for ``input``.

        Blocks until the provider answers; run it on a worker thread.

        Args:
            input: Prompt text to send to the model.
            model: Provider-specific model identifier.
            credential: API key used for authentication.
            temperature: Sampling temperature; bounds are the caller's concern.

        Returns:
            str: The generated text.

        Raises:
            RateLimitAppError: If the caller must wait before prompting again.
            LLMAppError: If the provider could not produce a result.
        """
        ...
