"""
Tests for ModelGateway (Anthropic client mocked).
"""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest
from anthropic import APIConnectionError, APITimeoutError

from services.model_gateway import HistoryTurn, ModelGateway, ModelGatewayError

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def fake_response(*texts, input_tokens=12, output_tokens=34):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=t) for t in texts],
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
    )


@pytest.fixture
def client():
    client = MagicMock()
    client.messages.create.return_value = fake_response("Start with one small step.")
    return client


@pytest.fixture
def gateway(client):
    return ModelGateway(client, default_model="haiku", pro_model="sonnet", max_output_tokens=500)


class TestGenerate:
    def test_sends_history_then_new_user_turn(self, gateway, client):
        history = [HistoryTurn("user", "hi"), HistoryTurn("assistant", "hello")]

        result = gateway.generate("You are a coach.", history, "what next?")

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "You are a coach."
        assert kwargs["messages"] == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "what next?"},
        ]
        assert kwargs["max_tokens"] == 500
        assert result.text == "Start with one small step."
        assert (result.input_tokens, result.output_tokens) == (12, 34)

    def test_model_tier_follows_entitlement(self, gateway, client):
        assert gateway.generate("s", [], "m", entitled=False).model == "haiku"
        assert client.messages.create.call_args.kwargs["model"] == "haiku"

        assert gateway.generate("s", [], "m", entitled=True).model == "sonnet"
        assert client.messages.create.call_args.kwargs["model"] == "sonnet"

    def test_text_blocks_are_joined(self, gateway, client):
        client.messages.create.return_value = fake_response("Part one. ", "Part two.")
        assert gateway.generate("s", [], "m").text == "Part one. Part two."

    def test_timeout_is_a_gateway_error(self, gateway, client):
        client.messages.create.side_effect = APITimeoutError(request=REQUEST)
        with pytest.raises(ModelGatewayError):
            gateway.generate("s", [], "m")
        assert client.messages.create.call_count == 1

    def test_api_error_is_a_gateway_error(self, gateway, client):
        client.messages.create.side_effect = APIConnectionError(request=REQUEST)
        with pytest.raises(ModelGatewayError):
            gateway.generate("s", [], "m")

    def test_empty_reply_is_a_gateway_error(self, gateway, client):
        client.messages.create.return_value = fake_response("   ")
        with pytest.raises(ModelGatewayError):
            gateway.generate("s", [], "m")

    def test_unconfigured_backend_is_a_gateway_error(self):
        gateway = ModelGateway(None, default_model="haiku", pro_model="sonnet")
        with pytest.raises(ModelGatewayError):
            gateway.generate("s", [], "m")


class TestFromSettings:
    def test_client_is_bounded_and_never_retries(self):
        with patch("services.model_gateway.settings") as settings, \
                patch("services.model_gateway.Anthropic") as anthropic_cls:
            settings.ANTHROPIC_API_KEY = "sk-test"
            settings.COACH_MODEL_TIMEOUT_S = 12.5
            settings.COACH_MODEL_DEFAULT = "haiku"
            settings.COACH_MODEL_PRO = "sonnet"
            settings.COACH_MAX_OUTPUT_TOKENS = 800

            gateway = ModelGateway.from_settings()

        anthropic_cls.assert_called_once_with(api_key="sk-test", timeout=12.5, max_retries=0)
        assert gateway.model_for(True) == "sonnet"
        assert gateway.model_for(False) == "haiku"
        assert gateway.max_output_tokens == 800

    def test_missing_api_key_leaves_client_unset(self):
        with patch("services.model_gateway.settings") as settings:
            settings.ANTHROPIC_API_KEY = None
            settings.COACH_MODEL_DEFAULT = "haiku"
            settings.COACH_MODEL_PRO = "sonnet"
            settings.COACH_MAX_OUTPUT_TOKENS = 800
            gateway = ModelGateway.from_settings()
        assert gateway.client is None
