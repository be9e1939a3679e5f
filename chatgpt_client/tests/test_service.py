import httpx

from chatgpt_client.api.service import outcome_to_dict, run_turn
from chatgpt_client.auth.token_cache import TokenCache
from chatgpt_client.conversation.session import ConversationSession


class SettingsStub:
    api_base_url = "https://chat.example.com/api"
    backend_api_base_url = "https://chat.example.com/backend-api"
    user_agent = "test-agent"
    model = "text-davinci-002-render"
    request_timeout = 300.0
    socket_timeout = 60.0
    token_ttl = 30.0


class AuthResp:
    status_code = 200

    def __init__(self, payload):
        self._payload = payload

    def json(self):
        return self._payload


class FakeResponse:
    status_code = 200

    def __init__(self, lines):
        self._lines = lines

    def iter_lines(self):
        for line in self._lines:
            if isinstance(line, Exception):
                raise line
            yield line


class StreamContext:
    def __init__(self, response):
        self._response = response

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        return False


class Client:
    def __init__(self, lines, auth_payload=None):
        self._lines = lines
        self._auth_payload = auth_payload or {"accessToken": "tok"}

    def get(self, *a, **kw):
        return AuthResp(self._auth_payload)

    def stream(self, *a, **kw):
        return StreamContext(FakeResponse(self._lines))


def make_session(client):
    cache = TokenCache("sess", http_client=client, cfg=SettingsStub())
    return ConversationSession(cache, cfg=SettingsStub())


def test_run_turn_ok():
    lines = ['data: {"conversation_id": "c1", "message": {"id": "m1", "content": {"parts": ["done"]}}}', "data: [DONE]"]
    outcome = run_turn(make_session(Client(lines)), "hi")
    assert outcome.ok
    assert outcome.text == "done"
    assert outcome.conversation_id == "c1"
    assert outcome.parent_message_id == "m1"
    assert outcome_to_dict(outcome) == {
        "status": "ok",
        "text": "done",
        "conversation_id": "c1",
        "parent_message_id": "m1",
    }


def test_run_turn_auth_error():
    outcome = run_turn(make_session(Client([], auth_payload={"error": "invalid_token"})), "hi")
    assert outcome.status == "auth_error"
    data = outcome_to_dict(outcome)
    assert data["error"]["code"] == "AUTH_FAILED"


def test_run_turn_transport_error_keeps_partial_text():
    lines = [
        'data: {"message": {"id": "m1", "content": {"parts": ["half"]}}}',
        httpx.ReadTimeout("idle"),
    ]
    outcome = run_turn(make_session(Client(lines)), "hi")
    assert outcome.status == "transport_error"
    assert outcome.text == "half"
    assert outcome.parent_message_id == "m1"
