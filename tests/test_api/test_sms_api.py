"""
Tests for the SMS endpoints.
"""
from fastapi.testclient import TestClient

from conftest import FakeSMSGateway
from fivec.models.sms import MessageDirection


class TestSendSMSEndpoint:

    def test_send_sms(self, client: TestClient, api_prefix: str, store, sms_gateway):
        response = client.post(
            f"{api_prefix}/sms/send",
            json={
                "to": "+15551234567",
                "message": "Dinner moved to 7pm",
                "group_name": "Maple Supper Club",
                "sender_name": "Dana",
            },
        )

        assert response.status_code == 200
        data = response.json()
        thread = store.threads[data["thread_id"]]
        assert data["response_link"].endswith(f"/sms-respond/{thread.token}")
        assert data["message_sid"].startswith("SM")
        assert sms_gateway.sent[0]["body"].startswith("Dana says: Maple Supper Club: Dinner moved to 7pm")

    def test_send_sms_unconfigured(self, client: TestClient, api_prefix: str, gateways, store):
        gateways.sms = FakeSMSGateway(configured=False)

        response = client.post(f"{api_prefix}/sms/send", json={"to": "+15551234567", "message": "hi"})

        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == "FVC_002"
        assert "TWILIO_ACCOUNT_SID" in data["message"]
        assert store.threads == {}

    def test_send_sms_provider_failure(self, client: TestClient, api_prefix: str, sms_gateway):
        sms_gateway.fail_for = {"+15551234567"}

        response = client.post(f"{api_prefix}/sms/send", json={"to": "+15551234567", "message": "hi"})

        assert response.status_code == 502
        assert response.json()["error_code"] == "FVC_003"

    def test_send_sms_unknown_thread(self, client: TestClient, api_prefix: str):
        response = client.post(
            f"{api_prefix}/sms/send",
            json={"to": "+15551234567", "message": "hi", "thread_id": "missing"},
        )

        assert response.status_code == 404

    def test_send_sms_invalid_phone(self, client: TestClient, api_prefix: str):
        response = client.post(f"{api_prefix}/sms/send", json={"to": "123", "message": "hi"})

        assert response.status_code == 422


class TestInboundWebhook:

    def test_webhook_returns_twiml(self, client: TestClient, api_prefix: str, store):
        response = client.post(
            f"{api_prefix}/sms/webhook",
            data={"From": "+15551234567", "To": "+15550000000", "Body": "STOP", "MessageSid": "SM1"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/xml")
        assert "<Response>" in response.text
        thread = next(iter(store.threads.values()))
        assert thread.is_active is False
        assert store.messages[0].direction == MessageDirection.INBOUND
        assert store.messages[0].body == "STOP"


class TestReplyLinkEndpoints:

    def test_load_conversation_by_token(self, client: TestClient, api_prefix: str, store):
        sent = client.post(f"{api_prefix}/sms/send", json={"to": "+15551234567", "message": "Dinner at 7"}).json()
        token = store.threads[sent["thread_id"]].token

        response = client.get(f"{api_prefix}/sms/threads/{token}")

        assert response.status_code == 200
        data = response.json()
        assert data["thread"]["id"] == sent["thread_id"]
        assert data["thread"]["phone_number"] == "+15551234567"
        assert [m["direction"] for m in data["messages"]] == ["outbound"]
        assert data["messages"][0]["provider_message_id"] == sent["message_sid"]

    def test_unknown_token(self, client: TestClient, api_prefix: str):
        response = client.get(f"{api_prefix}/sms/threads/not-a-token")

        assert response.status_code == 404
        assert response.json()["error_code"] == "FVC_001"

    def test_reply_sends_on_the_same_thread(self, client: TestClient, api_prefix: str, store, sms_gateway):
        sent = client.post(f"{api_prefix}/sms/send", json={"to": "+15551234567", "message": "Dinner at 7"}).json()
        token = store.threads[sent["thread_id"]].token

        response = client.post(
            f"{api_prefix}/sms/threads/{token}/reply",
            json={"message": "Running late", "sender_name": "Dana"},
        )

        assert response.status_code == 200
        assert response.json()["thread_id"] == sent["thread_id"]
        assert len(store.threads) == 1
        assert sms_gateway.sent[-1]["to"] == "+15551234567"
        assert sms_gateway.sent[-1]["body"].startswith("Dana says: Running late")

    def test_reply_to_unsubscribed_thread(self, client: TestClient, api_prefix: str, store, sms_gateway):
        client.post(
            f"{api_prefix}/sms/webhook",
            data={"From": "+15551234567", "Body": "STOP", "MessageSid": "SM1"},
        )
        thread = next(iter(store.threads.values()))
        sent_before = len(sms_gateway.sent)

        response = client.post(f"{api_prefix}/sms/threads/{thread.token}/reply", json={"message": "hi"})

        assert response.status_code == 409
        assert len(sms_gateway.sent) == sent_before

    def test_reply_with_unknown_token(self, client: TestClient, api_prefix: str, sms_gateway):
        response = client.post(f"{api_prefix}/sms/threads/not-a-token/reply", json={"message": "hi"})

        assert response.status_code == 404
        assert sms_gateway.sent == []
