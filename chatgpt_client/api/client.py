"""ChatGPTAPI 门面。

组合一个共享的 httpx.Client 与一个 TokenCache，可以创建多个相互独立的
ConversationSession；自身也持有一个默认会话，便于只需要单线程对话的调用方。
"""

from typing import Optional

from chatgpt_client.auth.token_cache import TokenCache
from chatgpt_client.config.settings import settings
from chatgpt_client.conversation.session import ConversationSession, PartialCallback
from chatgpt_client.domain.exceptions import ValidationError
from chatgpt_client.transport.http_client import build_http_client


class ChatGPTAPI:
    """对外主入口。使用完毕必须 close()，或放在 with 语句中。"""

    def __init__(
        self,
        session_token: Optional[str] = None,
        *,
        api_base_url: Optional[str] = None,
        backend_api_base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        cfg=settings,
    ):
        token = session_token or getattr(cfg, "session_token", None)
        if not token:
            raise ValidationError(code="MISSING_SESSION_TOKEN", message="SESSION_TOKEN not set")
        self._settings = cfg
        self._backend_api_base_url = backend_api_base_url or cfg.backend_api_base_url
        self._client = build_http_client(cfg, user_agent=user_agent)
        self.token_cache = TokenCache(
            token,
            api_base_url=api_base_url,
            http_client=self._client,
            cfg=cfg,
        )
        self._default: Optional[ConversationSession] = None
        self._closed = False

    def new_conversation(self, **kwargs) -> ConversationSession:
        """创建一个新的独立会话，与其他会话共享 token 缓存和连接池。"""

        kwargs.setdefault("backend_api_base_url", self._backend_api_base_url)
        kwargs.setdefault("cfg", self._settings)
        return ConversationSession(self.token_cache, http_client=self._client, **kwargs)

    @property
    def conversation(self) -> ConversationSession:
        if self._default is None:
            self._default = self.new_conversation()
        return self._default

    def send_message(self, message: str, on_partial: Optional[PartialCallback] = None) -> str:
        return self.conversation.send_message(message, on_partial)

    def reset_conversation(self) -> None:
        self.conversation.reset_conversation()

    def refresh_access_token(self) -> str:
        return self.token_cache.get_access_token()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.token_cache.close()
        finally:
            self._client.close()

    def __enter__(self) -> "ChatGPTAPI":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
