"""单个对话线程的流式会话。

ConversationSession 维护一条线性消息链的连续性状态：

- conversation_id: 服务端会话 ID，首次回复前为 None。
- parent_message_id: 链上最后一条消息的 ID，每次发送都以它为父消息。

send_message() 执行一轮完整的交互：取 token -> 构造请求体 ->
流式 POST -> 逐帧解码并更新连续性状态 -> 返回最后一段助手文本。

同一个实例同一时间只允许一个调用在进行中，重叠调用会抛出
ConcurrencyMisuseError；不同实例可以共享同一个 TokenCache 并发使用。
"""

import threading
import time
from typing import Callable, Optional

import httpx

from chatgpt_client.auth.token_cache import TokenCache
from chatgpt_client.config.settings import settings
from chatgpt_client.conversation.stream import decode_frame
from chatgpt_client.domain.exceptions import (
    ApiError,
    ConcurrencyMisuseError,
    FrameParseError,
    RateLimitError,
    TransportError,
)
from chatgpt_client.domain.models import ConversationEvent, ConversationRequest, Prompt, new_message_id
from chatgpt_client.infrastructure.logging.logger import logger


PartialCallback = Callable[[str], None]
FrameErrorCallback = Callable[[FrameParseError], None]


class ConversationSession:
    """一条对话线程。

    on_frame_error: 可选诊断回调，收到无法解析的 data: 帧时调用；
    解析失败的帧会被跳过，不会中断本轮对话。
    """

    def __init__(
        self,
        token_cache: TokenCache,
        *,
        http_client: Optional[httpx.Client] = None,
        backend_api_base_url: Optional[str] = None,
        model: Optional[str] = None,
        cfg=settings,
        on_frame_error: Optional[FrameErrorCallback] = None,
        conversation_id: Optional[str] = None,
        parent_message_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._token_cache = token_cache
        self._client = http_client if http_client is not None else token_cache.http_client
        self._backend_api_base_url = (backend_api_base_url or cfg.backend_api_base_url).rstrip("/")
        self._model = model or cfg.model
        self._request_timeout = cfg.request_timeout
        self._on_frame_error = on_frame_error
        self._clock = clock
        self._conversation_id = conversation_id
        self._parent_message_id = parent_message_id or new_message_id()
        self._busy = threading.Lock()
        # 最近一次失败时已收到的部分文本，仅用于诊断
        self.last_partial_text = ""

    @property
    def conversation_id(self) -> Optional[str]:
        return self._conversation_id

    @property
    def parent_message_id(self) -> str:
        return self._parent_message_id

    def send_message(self, text: str, on_partial: Optional[PartialCallback] = None) -> str:
        """发送一条消息并返回助手回复。

        Args:
            text: 用户输入内容。
            on_partial: 可选回调，每收到一段助手文本就按到达顺序同步调用一次。
                接口偶尔会卡住不发送 [DONE]，需要实时展示时请使用回调。

        Returns:
            最后一个内容帧的文本；整轮没有内容帧时为空字符串。

        Raises:
            AuthenticationError: token 换取失败，此时不会发出对话请求。
            TransportError: 请求无法建立、连接中断或整体超时。
            ConcurrencyMisuseError: 同一会话上已有调用在进行。
        """

        if not self._busy.acquire(blocking=False):
            raise ConcurrencyMisuseError(
                code="SESSION_BUSY",
                message="send_message called while another turn is in flight on this session",
            )
        try:
            return self._run_turn(text, on_partial)
        finally:
            self._busy.release()

    def reset_conversation(self) -> None:
        """重置会话：清空 conversation_id，重新生成 parent_message_id。"""

        if not self._busy.acquire(blocking=False):
            raise ConcurrencyMisuseError(
                code="SESSION_BUSY",
                message="reset_conversation called while a turn is in flight",
            )
        try:
            self._conversation_id = None
            self._parent_message_id = new_message_id()
        finally:
            self._busy.release()

    def build_request(self, text: str) -> ConversationRequest:
        return ConversationRequest(
            conversation_id=self._conversation_id,
            messages=[Prompt.user_text(text)],
            model=self._model,
            parent_message_id=self._parent_message_id,
        )

    # ---- 内部方法 ----

    def _run_turn(self, text: str, on_partial: Optional[PartialCallback]) -> str:
        self.last_partial_text = ""
        access_token = self._token_cache.get_access_token()
        body = self.build_request(text)
        url = f"{self._backend_api_base_url}/conversation"
        deadline = self._clock() + self._request_timeout
        logger.info(
            "conversation.turn.start",
            extra={"extra": {"conversation_id": self._conversation_id, "parent_message_id": self._parent_message_id}},
        )
        reply = ""
        try:
            with self._client.stream(
                "POST",
                url,
                json=body.to_payload(),
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                },
            ) as resp:
                self._check_status(resp)
                for line in resp.iter_lines():
                    if self._clock() > deadline:
                        raise TransportError(
                            code="REQUEST_TIMEOUT",
                            message=f"conversation request exceeded {self._request_timeout}s",
                            partial_text=reply,
                        )
                    frame = decode_frame(line)
                    if frame.kind == "ignored":
                        continue
                    if frame.kind == "done":
                        break
                    if frame.kind == "parse_error":
                        self._report_frame_error(frame.error)
                        continue
                    fragment = self._apply_event(frame.event)
                    if fragment is None:
                        continue
                    reply = fragment
                    if on_partial is not None:
                        on_partial(fragment)
        except httpx.RequestError as e:
            self.last_partial_text = reply
            logger.warning(
                "conversation.turn.failed",
                extra={"extra": {"conversation_id": self._conversation_id, "error": str(e)}},
            )
            raise TransportError(code="NETWORK_ERROR", message=str(e), partial_text=reply)
        except TransportError:
            self.last_partial_text = reply
            raise
        logger.info(
            "conversation.turn.done",
            extra={"extra": {"conversation_id": self._conversation_id, "reply_chars": len(reply)}},
        )
        return reply

    def _check_status(self, resp) -> None:
        if resp.status_code < 400:
            return
        resp.read()
        if resp.status_code in (401, 403):
            # access token 可能已被服务端作废
            self._token_cache.invalidate()
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="conversation rate limit", http_status=429)
        raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)

    def _apply_event(self, event: ConversationEvent) -> Optional[str]:
        """用一帧事件更新连续性状态，返回其中的文本片段（没有则为 None）。"""

        if event.conversation_id:
            self._conversation_id = event.conversation_id
        if event.error:
            logger.warning(
                "conversation.event_error",
                extra={"extra": {"conversation_id": self._conversation_id, "error": event.error}},
            )
        message = event.message
        if message is None:
            return None
        if message.id:
            self._parent_message_id = message.id
        # 不按 role 过滤：任何带内容的消息都会覆盖返回文本
        return message.first_part

    def _report_frame_error(self, error: FrameParseError) -> None:
        logger.warning(
            "conversation.frame_parse_error",
            extra={"extra": {"conversation_id": self._conversation_id, "error": error.message}},
        )
        if self._on_frame_error is not None:
            self._on_frame_error(error)
