"""Claude API client for encounter prompts."""

import anthropic
from aws_lambda_powertools import Logger

from shared.exceptions import TransportError

from .interfaces import ModelResponse

logger = Logger(child=True)


class ClaudeClient:
    """Wrapper for the Claude messages API."""

    MODEL = "claude-3-haiku-20240307"
    MAX_TOKENS = 1500
    provider = "claude"

    def __init__(self, api_key: str):
        """Initialize Claude client.

        Args:
            api_key: Anthropic API key
        """
        self.client = anthropic.Anthropic(api_key=api_key)

    def complete(self, prompt: str) -> ModelResponse:
        """Send a prompt as a single user message.

        Args:
            prompt: Complete compiled prompt

        Returns:
            ModelResponse with text and token usage

        Raises:
            TransportError: Any Anthropic API failure
        """
        try:
            response = self.client.messages.create(
                model=self.MODEL,
                max_tokens=self.MAX_TOKENS,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            logger.error(
                "Claude API error",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
            )
            raise TransportError(f"Claude API error: {type(e).__name__}", self.provider) from e

        usage = response.usage
        logger.info(
            "Claude API usage",
            extra={
                "model": self.MODEL,
                "input_tokens": usage.input_tokens,
                "output_tokens": usage.output_tokens,
            },
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        return ModelResponse(
            text=text,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )

    def send(self, prompt: str) -> str:
        """Send a compiled encounter prompt and return the raw text."""
        return self.complete(prompt).text
