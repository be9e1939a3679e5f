"""ChatGPT 网页对话接口客户端。

该包提供 session token 换取与缓存 (TokenCache)、
流式对话会话 (ConversationSession) 以及组合二者的门面 (ChatGPTAPI)。
"""

from chatgpt_client.api.client import ChatGPTAPI
from chatgpt_client.auth.token_cache import TokenCache
from chatgpt_client.conversation.session import ConversationSession
from chatgpt_client.domain.exceptions import (
    AuthenticationError,
    BusinessError,
    ConcurrencyMisuseError,
    TransportError,
)

__all__ = [
    "ChatGPTAPI",
    "TokenCache",
    "ConversationSession",
    "AuthenticationError",
    "BusinessError",
    "ConcurrencyMisuseError",
    "TransportError",
]
