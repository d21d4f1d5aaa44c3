"""
Tests for EmailGatewayClient.

HTTP is mocked with the responses library; tests check the contract with
calling code (payload, signature, error mapping).
"""

import hashlib
import hmac
import json

import pytest
import responses

from clients.email_client import EmailGatewayClient, EmailGatewayError

GATEWAY_URL = "https://gateway.example.com/send"


@pytest.fixture
def client():
    """Create client with test credentials."""
    return EmailGatewayClient(
        gateway_url=GATEWAY_URL,
        api_key="test-api-key",
        hmac_secret="test-hmac-secret",
    )


class TestEmailGatewayClientInit:
    """Test client initialization - fail-fast on invalid config."""

    @pytest.mark.parametrize("missing", ["gateway_url", "api_key", "hmac_secret"])
    def test_init_rejects_empty_credential(self, missing):
        credentials = {"gateway_url": GATEWAY_URL, "api_key": "k", "hmac_secret": "s"}
        credentials[missing] = ""

        with pytest.raises(ValueError, match=missing):
            EmailGatewayClient(**credentials)


class TestSendEmail:
    """Test send_email."""

    @responses.activate
    def test_successful_send(self, client):
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        result = client.send_email(to="owner@example.com", subject="Project margin used up", body="Body")

        assert result is None
        sent = json.loads(responses.calls[0].request.body)
        assert sent["email"] == "owner@example.com"
        assert sent["subject"] == "Project margin used up"

    @responses.activate
    def test_request_is_signed(self, client):
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        client.send_email(to="owner@example.com", subject="S", body="B")

        request = responses.calls[0].request
        body = request.body if isinstance(request.body, bytes) else request.body.encode("utf-8")
        expected = hmac.new(b"test-hmac-secret", body, hashlib.sha256).hexdigest()
        assert request.headers["X-Signature"] == expected
        assert request.headers["X-API-Key"] == "test-api-key"

    @responses.activate
    def test_idempotency_key_sent_in_header_and_body(self, client):
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        client.send_email(to="owner@example.com", subject="S", body="B", idempotency_key="margin-depleted:1")

        request = responses.calls[0].request
        assert request.headers["Idempotency-Key"] == "margin-depleted:1"
        assert json.loads(request.body)["idempotency_key"] == "margin-depleted:1"

    @responses.activate
    def test_idempotency_key_generated_when_omitted(self, client):
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        client.send_email(to="owner@example.com", subject="S", body="B")
        client.send_email(to="owner@example.com", subject="S", body="B")

        keys = [call.request.headers["Idempotency-Key"] for call in responses.calls]
        assert keys[0] and keys[0] != keys[1]

    @responses.activate
    def test_reply_to_only_when_given(self, client):
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        client.send_email(to="owner@example.com", subject="S", body="B")
        client.send_email(to="owner@example.com", subject="S", body="B", reply_to="billing@muster.example")

        first, second = (json.loads(call.request.body) for call in responses.calls)
        assert "reply_to" not in first
        assert second["reply_to"] == "billing@muster.example"

    def test_empty_recipient_raises_before_http(self, client):
        with pytest.raises(ValueError, match="Recipient"):
            client.send_email(to="", subject="S", body="B")

    @responses.activate
    def test_gateway_500_raises_error(self, client):
        responses.add(
            responses.POST, GATEWAY_URL,
            json={"success": False, "message": "Internal error"},
            status=500,
        )

        with pytest.raises(EmailGatewayError, match="Internal error"):
            client.send_email(to="owner@example.com", subject="S", body="B")

    @responses.activate
    def test_gateway_success_false_raises_error(self, client):
        responses.add(
            responses.POST, GATEWAY_URL,
            json={"success": False, "message": "Invalid email"},
            status=200,
        )

        with pytest.raises(EmailGatewayError):
            client.send_email(to="invalid", subject="S", body="B")

    @responses.activate
    def test_connection_failure_raises_error(self, client):
        responses.add(responses.POST, GATEWAY_URL, body=ConnectionError("Network unreachable"))

        with pytest.raises(EmailGatewayError, match="Connection failed"):
            client.send_email(to="owner@example.com", subject="S", body="B")

    @responses.activate
    def test_invalid_json_response_raises_error(self, client):
        responses.add(responses.POST, GATEWAY_URL, body="not json", status=200)

        with pytest.raises(EmailGatewayError, match="Invalid response"):
            client.send_email(to="owner@example.com", subject="S", body="B")
