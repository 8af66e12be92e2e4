"""SSM Parameter Store helpers."""

import os
from functools import lru_cache

import boto3
from aws_lambda_powertools import Logger

logger = Logger(child=True)

# Default SSM parameter holding the Anthropic API key
CLAUDE_API_KEY_PARAM = "/encounter-engine/dev/secrets/anthropic_api_key"


@lru_cache(maxsize=4)
def get_claude_api_key(param_name: str | None = None) -> str:
    """Retrieve the Anthropic API key from SSM Parameter Store.

    Resolution order for the parameter name: explicit argument, the
    CLAUDE_API_KEY_PARAM environment variable, then the default path.
    Cached per parameter name for the life of the container.

    Args:
        param_name: Optional SSM parameter name

    Returns:
        The API key string

    Raises:
        ClientError: If the SSM parameter cannot be read
    """
    name = param_name or os.environ.get("CLAUDE_API_KEY_PARAM", CLAUDE_API_KEY_PARAM)

    client = boto3.client("ssm")
    response = client.get_parameter(Name=name, WithDecryption=True)
    logger.info("Retrieved Claude API key from SSM Parameter Store", extra={"parameter": name})
    return response["Parameter"]["Value"]
