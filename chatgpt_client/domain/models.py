"""对话接口的请求/响应数据模型。

本模块定义了客户端在 HTTP 层与内部逻辑之间共享的结构：

- SessionResult / User: /auth/session 的返回体（camelCase）。
- ConversationRequest / Prompt / PromptContent: 发往 /conversation 的请求体。
- ConversationEvent / Message / MessageContent: 流式响应中每个 data: 帧的事件。
- TurnOutcome: 一轮对话的带标签结果，供不想处理异常的调用方使用。

请求体在线上使用 snake_case，可选字段缺省时直接省略而不是写 null；
解析响应时忽略未知字段，缺失字段取默认值。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4


DEFAULT_MODEL = "text-davinci-002-render"
ACTION_NEXT = "next"


def new_message_id() -> str:
    return str(uuid4())


@dataclass
class User:
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    picture: Optional[str] = None
    groups: List[str] = field(default_factory=list)
    features: List[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            email=data.get("email"),
            image=data.get("image"),
            picture=data.get("picture"),
            groups=list(data.get("groups") or []),
            features=list(data.get("features") or []),
        )


@dataclass
class SessionResult:
    """/auth/session 返回体。

    - access_token: 短期 Bearer 凭证，只在 TokenCache 内部使用。
    - expires: 服务端给出的过期时间字符串，仅作记录，缓存策略不依赖它。
    - error: 非空时表示换取失败。
    """

    user: Optional[User] = None
    expires: Optional[str] = None
    access_token: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "SessionResult":
        user_raw = data.get("user")
        return cls(
            user=User.from_payload(user_raw) if isinstance(user_raw, dict) else None,
            expires=data.get("expires"),
            access_token=data.get("accessToken"),
            error=data.get("error"),
        )


@dataclass
class PromptContent:
    parts: List[str]
    content_type: str = "text"

    def to_payload(self) -> Dict[str, Any]:
        return {"content_type": self.content_type, "parts": list(self.parts)}


@dataclass
class Prompt:
    """一条发出的用户消息，每条都带一个新的 uuid。"""

    content: PromptContent
    role: str = "user"
    id: str = field(default_factory=new_message_id)

    @classmethod
    def user_text(cls, text: str) -> "Prompt":
        return cls(content=PromptContent(parts=[text]))

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.id, "role": self.role, "content": self.content.to_payload()}


@dataclass
class ConversationRequest:
    """POST /conversation 的请求体。"""

    messages: List[Prompt]
    parent_message_id: str
    model: str = DEFAULT_MODEL
    action: str = ACTION_NEXT
    conversation_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"action": self.action}
        if self.conversation_id:
            payload["conversation_id"] = self.conversation_id
        payload["messages"] = [m.to_payload() for m in self.messages]
        payload["model"] = self.model
        payload["parent_message_id"] = self.parent_message_id
        return payload


@dataclass
class MessageContent:
    content_type: Optional[str] = None
    parts: List[str] = field(default_factory=list)


@dataclass
class Message:
    """流式事件里携带的消息（通常是助手回复的当前全文）。"""

    id: Optional[str] = None
    role: Optional[str] = None
    content: MessageContent = field(default_factory=MessageContent)
    user: Optional[str] = None
    create_time: Optional[Any] = None
    update_time: Optional[Any] = None
    end_turn: Optional[Any] = None
    weight: Optional[float] = None
    recipient: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Message":
        content_raw = data.get("content")
        if not isinstance(content_raw, dict):
            content_raw = {}
        parts = content_raw.get("parts")
        # role 在部分事件里嵌在 author 对象中
        role = data.get("role")
        author = data.get("author")
        if role is None and isinstance(author, dict):
            role = author.get("role")
        metadata = data.get("metadata")
        return cls(
            id=data.get("id"),
            role=role,
            content=MessageContent(
                content_type=content_raw.get("content_type"),
                parts=list(parts) if isinstance(parts, list) else [],
            ),
            user=data.get("user"),
            create_time=data.get("create_time"),
            update_time=data.get("update_time"),
            end_turn=data.get("end_turn"),
            weight=data.get("weight"),
            recipient=data.get("recipient"),
            metadata=metadata if isinstance(metadata, dict) else {},
        )

    @property
    def first_part(self) -> Optional[str]:
        if not self.content.parts:
            return None
        part = self.content.parts[0]
        return part if isinstance(part, str) else None


@dataclass
class ConversationEvent:
    message: Optional[Message] = None
    conversation_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ConversationEvent":
        message_raw = data.get("message")
        return cls(
            message=Message.from_payload(message_raw) if isinstance(message_raw, dict) else None,
            conversation_id=data.get("conversation_id"),
            error=data.get("error"),
        )


TurnStatus = Literal["ok", "auth_error", "transport_error", "misuse"]


@dataclass
class TurnOutcome:
    """一轮 send_message 的带标签结果。

    status 为 "ok" 时 text 是最终回复；否则 error 保存原始异常，
    text 是失败前已收到的部分内容（可能为空）。
    """

    status: TurnStatus
    text: str = ""
    conversation_id: Optional[str] = None
    parent_message_id: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"
