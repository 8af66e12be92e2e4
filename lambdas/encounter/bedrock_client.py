"""Bedrock client for Mistral model invocation."""

import json
from typing import TYPE_CHECKING

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from shared.exceptions import TransportError

from .interfaces import ModelResponse

if TYPE_CHECKING:
    from mypy_boto3_bedrock_runtime import BedrockRuntimeClient

logger = Logger(child=True)

MODEL_ID = "mistral.mistral-small-2402-v1:0"


def build_mistral_prompt(prompt: str) -> str:
    """Wrap a compiled prompt in Mistral's instruction format."""
    return f"<s>[INST] {prompt.strip()} [/INST]"


class BedrockClient:
    """Wrapper for Mistral via AWS Bedrock."""

    provider = "mistral"

    def __init__(
        self,
        region: str = "us-east-1",
        max_tokens: int = 1500,
        temperature: float = 0.8,
        top_p: float = 0.95,
    ):
        """Initialize Bedrock client.

        Args:
            region: AWS region for Bedrock
            max_tokens: Maximum response tokens
            temperature: Sampling temperature (0-1)
            top_p: Top-p sampling parameter
        """
        self.client: BedrockRuntimeClient = boto3.client(
            "bedrock-runtime", region_name=region
        )
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p

    def invoke_mistral(self, prompt: str) -> ModelResponse:
        """Invoke Mistral Small via Bedrock.

        Args:
            prompt: Prompt already in Mistral instruction format

        Returns:
            ModelResponse with text and estimated token counts

        Raises:
            TransportError: Bedrock API errors or an unreadable response body
        """
        body = json.dumps(
            {
                "prompt": prompt,
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
                "top_p": self.top_p,
            }
        )

        try:
            response = self.client.invoke_model(
                modelId=MODEL_ID,
                body=body,
                contentType="application/json",
                accept="application/json",
            )
            result = json.loads(response["body"].read())
            output_text = result["outputs"][0]["text"]
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(
                "Bedrock API error",
                extra={"error_code": error_code, "error_message": str(e)},
            )
            raise TransportError(f"Bedrock API error: {error_code}", self.provider) from e
        except (KeyError, IndexError, json.JSONDecodeError) as e:
            logger.error("Unexpected Bedrock response body", extra={"error": str(e)})
            raise TransportError("Unexpected Bedrock response body", self.provider) from e

        # Mistral doesn't return token counts, so we estimate
        input_tokens = int(len(prompt.split()) * 1.3)
        output_tokens = int(len(output_text.split()) * 1.3)

        logger.info(
            "Bedrock Mistral usage",
            extra={
                "model": MODEL_ID,
                "estimated_input_tokens": input_tokens,
                "estimated_output_tokens": output_tokens,
            },
        )

        return ModelResponse(
            text=output_text,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    def send(self, prompt: str) -> str:
        """Send a compiled encounter prompt and return the raw text."""
        return self.invoke_mistral(build_mistral_prompt(prompt)).text
