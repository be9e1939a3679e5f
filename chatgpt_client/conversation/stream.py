"""SSE 帧解码。

对话接口返回按行分隔的事件流，每条有效行形如：

    data: {"message": {...}, "conversation_id": "..."}
    data: [DONE]

其余行（空行、注释）直接忽略。
"""

import json
from dataclasses import dataclass
from typing import Literal, Optional

from chatgpt_client.domain.exceptions import FrameParseError
from chatgpt_client.domain.models import ConversationEvent


DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

FrameKind = Literal["ignored", "done", "event", "parse_error"]


@dataclass
class Frame:
    kind: FrameKind
    event: Optional[ConversationEvent] = None
    error: Optional[FrameParseError] = None


def decode_frame(line: str) -> Frame:
    """把一行文本解码为 Frame。"""

    if not line.startswith(DATA_PREFIX):
        return Frame(kind="ignored")
    payload = line[len(DATA_PREFIX):]
    # 去掉 "data:" 后面的单个分隔空格
    if payload.startswith(" "):
        payload = payload[1:]
    if payload == DONE_SENTINEL:
        return Frame(kind="done")
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        return Frame(
            kind="parse_error",
            error=FrameParseError(code="FRAME_PARSE_ERROR", message=str(e), line=line),
        )
    if not isinstance(data, dict):
        return Frame(
            kind="parse_error",
            error=FrameParseError(
                code="FRAME_PARSE_ERROR",
                message=f"expected a JSON object, got {type(data).__name__}",
                line=line,
            ),
        )
    return Frame(kind="event", event=ConversationEvent.from_payload(data))
