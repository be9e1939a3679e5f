import pytest

from chatgpt_client.api.client import ChatGPTAPI
from chatgpt_client.domain.exceptions import ValidationError


class SettingsStub:
    session_token = None
    api_base_url = "https://chat.example.com/api"
    backend_api_base_url = "https://chat.example.com/backend-api"
    user_agent = "default-agent"
    model = "text-davinci-002-render"
    request_timeout = 300.0
    socket_timeout = 60.0
    token_ttl = 30.0


def install_fake_client(monkeypatch, stream_lines):
    created = []

    class AuthResp:
        status_code = 200

        def json(self):
            return {"accessToken": "tok", "expires": "2030-01-01T00:00:00Z"}

    class FakeResponse:
        status_code = 200

        def iter_lines(self):
            for line in stream_lines:
                yield line

    class StreamContext:
        def __enter__(self):
            return FakeResponse()

        def __exit__(self, *args):
            return False

    class Client:
        def __init__(self, *a, **kw):
            self.kwargs = kw
            self.auth_urls = []
            self.post_urls = []
            self.closed = False
            created.append(self)

        def get(self, url, **kw):
            self.auth_urls.append(url)
            return AuthResp()

        def stream(self, method, url, **kw):
            self.post_urls.append(url)
            return StreamContext()

        def close(self):
            self.closed = True

    monkeypatch.setattr("httpx.Client", Client)
    return created


def test_send_message_through_default_conversation(monkeypatch):
    created = install_fake_client(
        monkeypatch,
        ['data: {"conversation_id": "c1", "message": {"id": "m1", "content": {"parts": ["pong"]}}}', "data: [DONE]"],
    )
    with ChatGPTAPI("sess", user_agent="ua/1.0", cfg=SettingsStub()) as api:
        assert api.send_message("ping") == "pong"
        assert api.conversation.conversation_id == "c1"
        api.reset_conversation()
        assert api.conversation.conversation_id is None
    client = created[0]
    assert len(created) == 1
    assert client.kwargs["headers"]["User-Agent"] == "ua/1.0"
    assert client.auth_urls == ["https://chat.example.com/api/auth/session"]
    assert client.post_urls == ["https://chat.example.com/backend-api/conversation"]
    assert client.closed


def test_conversations_are_independent_and_share_token(monkeypatch):
    created = install_fake_client(
        monkeypatch,
        ['data: {"conversation_id": "c1", "message": {"id": "m1", "content": {"parts": ["x"]}}}', "data: [DONE]"],
    )
    api = ChatGPTAPI("sess", backend_api_base_url="https://other.example.com/b", cfg=SettingsStub())
    a = api.new_conversation()
    b = api.new_conversation()
    a.send_message("hi")
    assert a.conversation_id == "c1"
    assert b.conversation_id is None
    assert a.parent_message_id != b.parent_message_id
    b.send_message("hi")
    assert created[0].post_urls == ["https://other.example.com/b/conversation"] * 2
    assert len(created[0].auth_urls) == 1
    api.close()
    api.close()


def test_refresh_access_token(monkeypatch):
    install_fake_client(monkeypatch, [])
    with ChatGPTAPI("sess", cfg=SettingsStub()) as api:
        assert api.refresh_access_token() == "tok"


def test_session_token_from_settings(monkeypatch):
    install_fake_client(monkeypatch, [])

    class WithToken(SettingsStub):
        session_token = "from-config"

    with ChatGPTAPI(cfg=WithToken()) as api:
        assert api.token_cache.session_token == "from-config"


def test_missing_session_token(monkeypatch):
    install_fake_client(monkeypatch, [])
    with pytest.raises(ValidationError):
        ChatGPTAPI(cfg=SettingsStub())
