"""Tests for Bedrock client."""

import json
from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from encounter.bedrock_client import MODEL_ID, BedrockClient, build_mistral_prompt
from shared.exceptions import TransportError


def body_of(text: str) -> dict:
    return {"body": BytesIO(json.dumps({"outputs": [{"text": text}]}).encode())}


class TestBuildMistralPrompt:
    """Tests for build_mistral_prompt."""

    def test_wraps_in_instruction_tags(self) -> None:
        """Prompts are wrapped in Mistral's instruction format."""
        assert build_mistral_prompt("  Roll for it.\n") == "<s>[INST] Roll for it. [/INST]"


class TestBedrockClient:
    """Tests for BedrockClient."""

    @patch("encounter.bedrock_client.boto3")
    def test_invoke_mistral_success(self, mock_boto3: MagicMock) -> None:
        """Test successful Mistral invocation."""
        mock_bedrock = MagicMock()
        mock_boto3.client.return_value = mock_bedrock
        mock_bedrock.invoke_model.return_value = body_of("The troll attacks!")

        client = BedrockClient()
        result = client.invoke_mistral("Test prompt")

        assert result.text == "The troll attacks!"
        assert result.input_tokens > 0
        call_kwargs = mock_bedrock.invoke_model.call_args.kwargs
        assert call_kwargs["modelId"] == MODEL_ID

    @patch("encounter.bedrock_client.boto3")
    def test_parameters_passed(self, mock_boto3: MagicMock) -> None:
        """Test that sampling parameters reach the request body."""
        mock_bedrock = MagicMock()
        mock_boto3.client.return_value = mock_bedrock
        mock_bedrock.invoke_model.return_value = body_of("Response")

        client = BedrockClient(max_tokens=500, temperature=0.5, top_p=0.9)
        client.invoke_mistral("Test prompt")

        body = json.loads(mock_bedrock.invoke_model.call_args.kwargs["body"])
        assert body["prompt"] == "Test prompt"
        assert body["max_tokens"] == 500
        assert body["temperature"] == 0.5
        assert body["top_p"] == 0.9

    @patch("encounter.bedrock_client.boto3")
    def test_client_error_becomes_transport_error(self, mock_boto3: MagicMock) -> None:
        """Bedrock API errors are raised as TransportError."""
        mock_bedrock = MagicMock()
        mock_boto3.client.return_value = mock_bedrock
        mock_bedrock.invoke_model.side_effect = ClientError(
            {"Error": {"Code": "ThrottlingException", "Message": "Rate limited"}},
            "InvokeModel",
        )

        with pytest.raises(TransportError) as exc_info:
            BedrockClient().invoke_mistral("Test prompt")

        assert "ThrottlingException" in exc_info.value.message
        assert exc_info.value.provider == "mistral"

    @patch("encounter.bedrock_client.boto3")
    def test_malformed_body_becomes_transport_error(self, mock_boto3: MagicMock) -> None:
        """A body without outputs is a transport failure."""
        mock_bedrock = MagicMock()
        mock_boto3.client.return_value = mock_bedrock
        mock_bedrock.invoke_model.return_value = {"body": BytesIO(b'{"outputs": []}')}

        with pytest.raises(TransportError):
            BedrockClient().invoke_mistral("Test prompt")

    @patch("encounter.bedrock_client.boto3")
    def test_send_wraps_prompt(self, mock_boto3: MagicMock) -> None:
        """send wraps the compiled prompt and returns plain text."""
        mock_bedrock = MagicMock()
        mock_boto3.client.return_value = mock_bedrock
        mock_bedrock.invoke_model.return_value = body_of('{"narrative": "Hit!"}')

        result = BedrockClient().send("You are the game master.")

        assert result == '{"narrative": "Hit!"}'
        prompt = json.loads(mock_bedrock.invoke_model.call_args.kwargs["body"])["prompt"]
        assert prompt.startswith("<s>[INST]")
        assert "You are the game master." in prompt
        assert prompt.endswith("[/INST]")

    @patch("encounter.bedrock_client.boto3")
    def test_region_configuration(self, mock_boto3: MagicMock) -> None:
        """Test that region is configurable."""
        BedrockClient(region="us-west-2")

        mock_boto3.client.assert_called_once_with("bedrock-runtime", region_name="us-west-2")
