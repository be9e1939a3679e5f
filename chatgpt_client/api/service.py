"""对外 API 服务模块。

把 send_message 的异常结果转换为带标签的 TurnOutcome，
方便 UI / 脚本层只按 status 分支而不必捕获异常。
"""

from typing import Any, Dict, Optional

from chatgpt_client.conversation.session import ConversationSession, PartialCallback
from chatgpt_client.domain.exceptions import (
    AuthenticationError,
    BusinessError,
    ConcurrencyMisuseError,
    TransportError,
)
from chatgpt_client.domain.models import TurnOutcome
from chatgpt_client.infrastructure.logging.logger import logger


def run_turn(
    session: ConversationSession,
    text: str,
    on_partial: Optional[PartialCallback] = None,
) -> TurnOutcome:
    """执行一轮对话并返回 TurnOutcome。

    Args:
        session: 目标会话。
        text: 用户输入内容。
        on_partial: 可选的增量回调。

    Returns:
        status 为 ok / auth_error / transport_error / misuse 之一的结果。

    Raises:
        其他 BusinessError（如 ValidationError）原样抛出。
    """
    try:
        reply = session.send_message(text, on_partial)
    except AuthenticationError as e:
        return _failed(session, "auth_error", e, "")
    except TransportError as e:
        return _failed(session, "transport_error", e, e.extra.get("partial_text", ""))
    except ConcurrencyMisuseError as e:
        return _failed(session, "misuse", e, "")
    return TurnOutcome(
        status="ok",
        text=reply,
        conversation_id=session.conversation_id,
        parent_message_id=session.parent_message_id,
    )


def _failed(session: ConversationSession, status: str, error: BusinessError, partial: str) -> TurnOutcome:
    logger.error(f"Turn failed: {error.message}", extra={"extra": {
        "conversation_id": session.conversation_id,
        "status": status,
        "code": error.code,
    }})
    return TurnOutcome(
        status=status,
        text=partial,
        conversation_id=session.conversation_id,
        parent_message_id=session.parent_message_id,
        error=error,
    )


def outcome_to_dict(outcome: TurnOutcome) -> Dict[str, Any]:
    """转换为可 JSON 序列化的字典。"""
    result: Dict[str, Any] = {
        "status": outcome.status,
        "text": outcome.text,
        "conversation_id": outcome.conversation_id,
        "parent_message_id": outcome.parent_message_id,
    }
    if isinstance(outcome.error, BusinessError):
        result["error"] = {
            "code": outcome.error.code,
            "message": outcome.error.message,
            "http_status": outcome.error.http_status,
        }
    return result
