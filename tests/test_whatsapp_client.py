import json

import httpx
import pytest

from quickbarber.services.messaging import ButtonOption, MessageSendError, WhatsAppClient


def _client(handler):
    return WhatsAppClient(
        "1234567890",
        "token-abc",
        api_version="v20.0",
        base_url="https://graph.example.com/",
        transport=httpx.MockTransport(handler),
    )


class TestWhatsAppClient:
    def test_send_text(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, json={"messages": [{"id": "wamid.X"}]})

        result = _client(handler).send_text("919811122233", "Hello")

        assert seen["url"] == "https://graph.example.com/v20.0/1234567890/messages"
        assert seen["auth"] == "Bearer token-abc"
        assert seen["json"] == {
            "messaging_product": "whatsapp",
            "to": "919811122233",
            "type": "text",
            "text": {"body": "Hello"},
        }
        assert result["messages"][0]["id"] == "wamid.X"

    def test_up_to_three_options_are_reply_buttons(self):
        seen = {}

        def handler(request):
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, json={})

        _client(handler).send_buttons(
            "919811122233",
            "Pick one",
            [ButtonOption("service_haircut", "Haircut"), ButtonOption("service_x", "A very long service title here")],
        )

        interactive = seen["json"]["interactive"]
        assert interactive["type"] == "button"
        buttons = interactive["action"]["buttons"]
        assert buttons[0] == {"type": "reply", "reply": {"id": "service_haircut", "title": "Haircut"}}
        assert len(buttons[1]["reply"]["title"]) <= 20

    def test_longer_menus_become_a_list(self):
        seen = {}

        def handler(request):
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, json={})

        options = [ButtonOption(f"slot_{i}", f"Slot {i}") for i in range(3)] + [ButtonOption("more_slots", "More Slots")]
        _client(handler).send_buttons("919811122233", "Times", options)

        interactive = seen["json"]["interactive"]
        assert interactive["type"] == "list"
        rows = interactive["action"]["sections"][0]["rows"]
        assert [row["id"] for row in rows] == ["slot_0", "slot_1", "slot_2", "more_slots"]

    def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "bad"}})

        with pytest.raises(MessageSendError) as exc_info:
            _client(handler).send_text("919811122233", "Hello")

        assert exc_info.value.status_code == 400

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(MessageSendError):
            _client(handler).send_text("919811122233", "Hello")

    def test_mark_as_read(self):
        seen = {}

        def handler(request):
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        _client(handler).mark_as_read("wamid.Y")

        assert seen["json"] == {"messaging_product": "whatsapp", "status": "read", "message_id": "wamid.Y"}
