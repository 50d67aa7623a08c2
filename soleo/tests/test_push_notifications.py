import http.client
import json
from typing import Any, List, Mapping, Optional, Sequence
from urllib import error as urllib_error

import pytest

from soleo.app.services import notifications
from soleo.app.users import UserRecord
from soleo.config import load_settings
from soleo.push import DevPushProvider, FCMPushProvider, PushDeliveryError, PushProvider, create_push_provider
from soleo.push import providers as providers_module


class RecordingProvider(PushProvider):
    name = "recording"

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.sent: List[Any] = []
        self.error = error

    def send(self, tokens: Sequence[str], title: str, body: str, data: Optional[Mapping[str, str]] = None) -> int:
        if self.error is not None:
            raise self.error
        self.sent.append((list(tokens), title, body, dict(data or {})))
        return len(tokens)


class FakeResponse:
    def __init__(self, payload):
        self._body = json.dumps(payload).encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


def test_fcm_provider_batches_unique_tokens(monkeypatch):
    requests = []

    def fake_urlopen(req, timeout=None):
        payload = json.loads(req.data.decode("utf-8"))
        requests.append((req, payload))
        return FakeResponse({"success": len(payload["registration_ids"])})

    monkeypatch.setattr(providers_module.urllib_request, "urlopen", fake_urlopen)
    provider = FCMPushProvider(endpoint="https://fcm.example/send", server_key="abc", timeout_seconds=5)
    provider.batch_size = 2

    accepted = provider.send(["t1", "t2", "t1", "", "t3"], "Hola", "Cuerpo", {"type": "test"})

    assert accepted == 3
    assert [payload["registration_ids"] for _, payload in requests] == [["t1", "t2"], ["t3"]]
    req, payload = requests[0]
    assert req.get_header("Authorization") == "key=abc"
    assert payload["notification"] == {"title": "Hola", "body": "Cuerpo"}
    assert payload["data"] == {"type": "test"}


def test_fcm_transport_error_raises_delivery_error(monkeypatch):
    def failing_urlopen(req, timeout=None):
        raise urllib_error.URLError("connection refused")

    monkeypatch.setattr(providers_module.urllib_request, "urlopen", failing_urlopen)
    provider = FCMPushProvider(endpoint="https://fcm.example/send", server_key="abc", timeout_seconds=5)

    with pytest.raises(PushDeliveryError):
        provider.send(["t1"], "Hola", "Cuerpo")


def test_create_push_provider_falls_back_without_key():
    fcm_without_key = load_settings({"PUSH_PROVIDER": "fcm"}).push
    fcm_with_key = load_settings({"PUSH_PROVIDER": "fcm", "FCM_SERVER_KEY": "abc"}).push

    assert isinstance(create_push_provider(fcm_without_key), DevPushProvider)
    assert isinstance(create_push_provider(fcm_with_key), FCMPushProvider)
    assert isinstance(create_push_provider(load_settings({}).push), DevPushProvider)


def test_notify_user_sends_to_registered_tokens():
    provider = RecordingProvider()
    user = UserRecord(id=1, name="Ana", email="ana@example.com", fcm_tokens=["t1", "t2"])

    sent = notifications.notify_user(user, "Título", "Cuerpo", data={"type": "x"}, provider=provider)

    assert sent == 2
    assert provider.sent == [(["t1", "t2"], "Título", "Cuerpo", {"type": "x"})]


def test_notify_tokens_skips_users_without_tokens():
    provider = RecordingProvider()

    assert notifications.notify_tokens([], "Título", "Cuerpo", provider=provider) == 0
    assert provider.sent == []


def test_notify_tokens_swallows_delivery_errors():
    provider = RecordingProvider(error=PushDeliveryError("boom"))

    assert notifications.notify_tokens(["t1"], "Título", "Cuerpo", provider=provider) == 0


class SilentResponse(FakeResponse):
    def __init__(self):
        super().__init__({})

    def read(self):
        raise TimeoutError("timed out")


@pytest.mark.parametrize(
    "error",
    [TimeoutError("timed out"), http.client.RemoteDisconnected("Remote end closed connection")],
)
def test_fcm_socket_errors_raise_delivery_error(monkeypatch, error):
    def failing_urlopen(req, timeout=None):
        raise error

    monkeypatch.setattr(providers_module.urllib_request, "urlopen", failing_urlopen)
    provider = FCMPushProvider(endpoint="https://fcm.example/send", server_key="abc", timeout_seconds=0.5)

    with pytest.raises(PushDeliveryError):
        provider.send(["t1"], "Hola", "Cuerpo")


def test_notify_tokens_returns_zero_when_fcm_never_answers(monkeypatch):
    monkeypatch.setattr(providers_module.urllib_request, "urlopen", lambda req, timeout=None: SilentResponse())
    provider = FCMPushProvider(endpoint="https://fcm.example/send", server_key="abc", timeout_seconds=0.5)

    assert notifications.notify_tokens(["tok"], "t", "b", provider=provider) == 0


def test_notify_tokens_swallows_unexpected_errors():
    provider = RecordingProvider(error=TimeoutError("timed out"))

    assert notifications.notify_tokens(["t1"], "Título", "Cuerpo", provider=provider) == 0


@pytest.mark.parametrize(
    "days_left, expected",
    [(0, "expira hoy"), (1, "expira hoy"), (3, "expira en 3 días")],
)
def test_expiry_alert_body(days_left, expected):
    body = notifications.expiry_alert_body("Ana", "BRONCE", days_left)

    assert body.startswith('Ana, tu plan "BRONCE"')
    assert expected in body


def test_expiry_alert_body_defaults_plan_name():
    assert '"Semilla"' in notifications.expiry_alert_body("Ana", None, 2)


def test_payment_completed_body_mentions_replacement():
    assert "reemplazó" in notifications.payment_completed_body("ORO", True)
    assert "reemplazó" not in notifications.payment_completed_body("ORO", False)
