"""Tests for trigger adapters and the HTTP client."""
from unittest.mock import patch

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout

from flowrunner.config import Settings
from flowrunner.errors import MissingCredentials, NotFound, SubscriptionError
from flowrunner.node_sdk.http import HttpApiError, HttpClient, HttpTimeoutError
from flowrunner.triggers import TelegramTrigger, WebhookTrigger, get_adapter
from flowrunner.triggers.telegram import format_duration, format_file_size

REQUEST = "flowrunner.node_sdk.http.requests.request"
API = "https://telegram.test"


class TestHttpClient:
    """Test timeout enforcement and error mapping."""

    def test_joins_base_url_and_passes_timeout(self, mock_response):
        client = HttpClient(base_url="https://api.test/", timeout=7)
        with patch(REQUEST, return_value=mock_response({"ok": True})) as request:
            response = client.get("/items", params={"q": "x"})

        assert response.json() == {"ok": True}
        kwargs = request.call_args.kwargs
        assert kwargs["url"] == "https://api.test/items"
        assert kwargs["timeout"] == 7
        assert kwargs["params"] == {"q": "x"}

    def test_timeout_maps_to_http_timeout_error(self):
        client = HttpClient(timeout=2)
        with patch(REQUEST, side_effect=Timeout("slow")):
            with pytest.raises(HttpTimeoutError) as exc_info:
                client.get("https://api.test/slow")

        assert exc_info.value.timeout == 2
        assert "timed out after 2s" in exc_info.value.message

    def test_connection_error_maps_to_http_api_error(self):
        with patch(REQUEST, side_effect=RequestsConnectionError("refused")):
            with pytest.raises(HttpApiError, match="Request failed"):
                HttpClient().post("https://api.test/x", json={})

    def test_raise_for_status(self, mock_response):
        with patch(REQUEST, return_value=mock_response({"error": "nope"}, status_code=500)):
            response = HttpClient().get("https://api.test/x")

        with pytest.raises(HttpApiError) as exc_info:
            response.raise_for_status()
        assert exc_info.value.status_code == 500


class TestGetAdapter:
    """Test adapter lookup."""

    def test_known_adapters(self):
        settings = Settings(telegram_api_base="https://tg.example/")

        assert isinstance(get_adapter("webhook", settings), WebhookTrigger)
        telegram = get_adapter("telegram", settings)
        assert isinstance(telegram, TelegramTrigger)
        assert telegram.api_base == "https://tg.example"

    def test_unknown_adapter(self):
        with pytest.raises(NotFound):
            get_adapter("smoke-signals")


class TestWebhookTrigger:
    """Test the generic webhook adapter."""

    def test_normalize_wraps_body(self):
        assert WebhookTrigger().normalize({"a": 1}) == {"json": {"a": 1}}

    def test_needs_no_credentials(self):
        adapter = WebhookTrigger()
        adapter.check_credentials(None)
        assert adapter.remove_subscription({}) is True


class TestTelegramSubscription:
    """Test setWebhook / deleteWebhook calls."""

    def test_missing_token(self):
        with pytest.raises(MissingCredentials) as exc_info:
            TelegramTrigger(api_base=API).create_subscription({}, "http://cb")
        assert exc_info.value.names == ["token"]

    def test_create_subscription(self, mock_response):
        adapter = TelegramTrigger(api_base=API)
        with patch(REQUEST, return_value=mock_response({"ok": True, "result": True})) as request:
            adapter.create_subscription({"token": "123:ABC"}, "http://flow.test/api/webhooks/telegram/wf1")

        kwargs = request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == f"{API}/bot123:ABC/setWebhook"
        assert kwargs["json"] == {
            "url": "http://flow.test/api/webhooks/telegram/wf1",
            "allowed_updates": ["message", "edited_message"],
        }

    def test_create_subscription_rejected(self, mock_response):
        adapter = TelegramTrigger(api_base=API)
        body = {"ok": False, "description": "Unauthorized"}
        with patch(REQUEST, return_value=mock_response(body)):
            with pytest.raises(SubscriptionError, match="Unauthorized"):
                adapter.create_subscription({"token": "bad"}, "http://cb")

    def test_create_subscription_http_error(self, mock_response):
        adapter = TelegramTrigger(api_base=API)
        with patch(REQUEST, return_value=mock_response({}, status_code=401)):
            with pytest.raises(SubscriptionError, match="Failed to register webhook"):
                adapter.create_subscription({"token": "bad"}, "http://cb")

    def test_remove_subscription(self, mock_response):
        adapter = TelegramTrigger(api_base=API)
        with patch(REQUEST, return_value=mock_response({"ok": True})) as request:
            assert adapter.remove_subscription({"token": "123:ABC"}) is True
        assert request.call_args.kwargs["url"] == f"{API}/bot123:ABC/deleteWebhook"

    def test_remove_subscription_failure(self):
        adapter = TelegramTrigger(api_base=API)
        with patch(REQUEST, side_effect=RequestsConnectionError("down")):
            assert adapter.remove_subscription({"token": "123:ABC"}) is False

    def test_remove_without_token(self):
        with patch(REQUEST) as request:
            assert TelegramTrigger(api_base=API).remove_subscription({}) is True
        request.assert_not_called()


class TestTelegramUpdates:
    """Test inbound update normalization."""

    def test_text_message(self):
        update = {"update_id": 1, "message": {"message_id": 5, "text": "hello"}}

        payload = TelegramTrigger(api_base=API).normalize(update, {"token": "123:ABC"})

        message = payload["json"]["message"]
        assert message["has_voice"] is False
        assert message["message_type"] == "text"
        assert payload["json"]["_botToken"] == "123:ABC"

    def test_other_message(self):
        update = {"message": {"message_id": 5, "sticker": {}}}
        payload = TelegramTrigger(api_base=API).normalize(update)

        assert payload["json"]["message"]["message_type"] == "other"
        assert "_botToken" not in payload["json"]

    def test_update_without_message(self):
        update = {"update_id": 2, "callback_query": {"id": "x"}}
        assert TelegramTrigger(api_base=API).normalize(update) == {"json": update}

    def test_voice_message_with_token(self, mock_response):
        update = {"message": {"voice": {
            "file_id": "F1", "file_unique_id": "U1", "duration": 125, "file_size": 2048,
        }}}
        body = {"ok": True, "result": {"file_path": "voice/file_1.oga"}}
        with patch(REQUEST, return_value=mock_response(body)) as request:
            payload = TelegramTrigger(api_base=API).normalize(update, {"token": "123:ABC"})

        message = payload["json"]["message"]
        voice = message["voice"]
        assert message["has_voice"] is True
        assert message["message_type"] == "voice"
        assert voice["duration_formatted"] == "2m 5s"
        assert voice["file_size_formatted"] == "2.0 KB"
        assert voice["file_url"] == f"{API}/file/bot123:ABC/voice/file_1.oga"
        assert voice["download_url"] == voice["file_url"]
        assert request.call_args.kwargs["json"] == {"file_id": "F1"}

    def test_voice_message_getfile_failure(self, mock_response):
        update = {"message": {"voice": {"file_id": "F1", "duration": 3}}}
        body = {"ok": False, "description": "file is too big"}
        with patch(REQUEST, return_value=mock_response(body)):
            payload = TelegramTrigger(api_base=API).normalize(update, {"token": "123:ABC"})

        voice = payload["json"]["message"]["voice"]
        assert "file_url" not in voice
        assert "file is too big" in voice["file_url_error"]

    def test_voice_message_without_token(self):
        update = {"message": {"voice": {"file_id": "F1", "file_unique_id": "U1"}}}
        with patch(REQUEST) as request:
            payload = TelegramTrigger(api_base=API).normalize(update)

        request.assert_not_called()
        voice = payload["json"]["message"]["voice"]
        assert voice["file_url_template"] == f"{API}/bot{{{{bot_token}}}}/getFile?file_id=F1"
        assert voice["download_url_template"] == f"{API}/file/bot{{{{bot_token}}}}/voice_U1"

    def test_non_dict_body(self):
        assert TelegramTrigger(api_base=API).normalize("ping") == {"json": "ping"}


class TestFormatting:
    """Test voice metadata formatting helpers."""

    @pytest.mark.parametrize("seconds,expected", [(0, "0s"), (45, "45s"), (60, "1m 0s"), (125, "2m 5s")])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    @pytest.mark.parametrize("size,expected", [
        (512, "512 bytes"),
        (2048, "2.0 KB"),
        (3 * 1024 * 1024, "3.0 MB"),
    ])
    def test_format_file_size(self, size, expected):
        assert format_file_size(size) == expected
