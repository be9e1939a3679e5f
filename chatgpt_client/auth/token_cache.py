"""access token 缓存。

TokenCache 持有长期有效的 session token，负责：

1. 调用 GET {api_base_url}/auth/session，用 cookie 换取短期 access token。
2. 在 ttl（默认 30 秒）内直接返回缓存值，过期后下一次调用重新换取。
3. 多线程并发调用时保证缓存值一致：换取过程串行化，读取不会看到半写状态。

过期采用本地单调时钟判断，不依赖服务端返回的 expires 字段，
因此调用方需要容忍偶尔多出的一次认证请求。
"""

import threading
import time
from typing import Callable, Optional, Tuple

import httpx

from chatgpt_client.config.settings import settings
from chatgpt_client.domain.exceptions import AuthenticationError, ValidationError
from chatgpt_client.domain.models import SessionResult
from chatgpt_client.infrastructure.logging.logger import logger
from chatgpt_client.transport.http_client import build_http_client


SESSION_COOKIE_NAME = "__Secure-next-auth.session-token"


class TokenCache:
    """session token -> access token 的换取与缓存。

    http_client 未传入时自行创建并在 close() 时关闭；
    外部传入的 client 由调用方管理生命周期。
    """

    def __init__(
        self,
        session_token: str,
        *,
        api_base_url: Optional[str] = None,
        ttl: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
        cfg=settings,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not session_token:
            raise ValidationError(code="MISSING_SESSION_TOKEN", message="session token not set")
        self._session_token = session_token
        self._api_base_url = (api_base_url or cfg.api_base_url).rstrip("/")
        self._ttl = ttl if ttl is not None else cfg.token_ttl
        self._clock = clock
        self._owns_client = http_client is None
        self._client = http_client if http_client is not None else build_http_client(cfg)
        # (token, expires_at) 整体替换，读取时不会看到不一致的组合
        self._entry: Optional[Tuple[str, float]] = None
        self._state_lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._closed = False

    @property
    def session_token(self) -> str:
        return self._session_token

    @property
    def http_client(self) -> httpx.Client:
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed

    def get_access_token(self) -> str:
        """返回有效的 access token，必要时执行一次认证换取。"""

        self._ensure_open()
        token = self._cached()
        if token is not None:
            return token
        with self._refresh_lock:
            # 等锁期间可能已有其他线程完成换取
            token = self._cached()
            if token is not None:
                return token
            token = self._exchange()
            with self._state_lock:
                self._entry = (token, self._clock() + self._ttl)
            return token

    def invalidate(self) -> None:
        """清空缓存，下一次 get_access_token() 会重新换取。"""

        with self._state_lock:
            self._entry = None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.invalidate()
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "TokenCache":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- 内部方法 ----

    def _ensure_open(self) -> None:
        if self._closed:
            raise ValidationError(code="CLIENT_CLOSED", message="token cache is closed")

    def _cached(self) -> Optional[str]:
        with self._state_lock:
            entry = self._entry
        if entry is None:
            return None
        token, expires_at = entry
        if self._clock() >= expires_at:
            return None
        return token

    def _exchange(self) -> str:
        url = f"{self._api_base_url}/auth/session"
        logger.info("auth.exchange.start", extra={"extra": {"url": url}})
        try:
            resp = self._client.get(
                url,
                headers={"cookie": f"{SESSION_COOKIE_NAME}={self._session_token}"},
            )
        except httpx.RequestError as e:
            logger.warning("auth.exchange.failed", extra={"extra": {"reason": "network", "error": str(e)}})
            raise AuthenticationError(code="AUTH_NETWORK_ERROR", message=str(e))
        if resp.status_code >= 400:
            logger.warning(
                "auth.exchange.failed",
                extra={"extra": {"reason": "http", "status": resp.status_code}},
            )
            raise AuthenticationError(
                code="AUTH_HTTP_ERROR",
                message=f"auth session request failed with HTTP {resp.status_code}",
                http_status=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise AuthenticationError(code="AUTH_BAD_RESPONSE", message=f"invalid auth response: {e}")
        if not isinstance(data, dict):
            raise AuthenticationError(code="AUTH_BAD_RESPONSE", message="auth response is not an object")
        result = SessionResult.from_payload(data)
        if result.error:
            logger.warning("auth.exchange.failed", extra={"extra": {"reason": "error", "error": result.error}})
            raise AuthenticationError(
                code="AUTH_FAILED",
                message=f"Failed to refresh access token: {result.error}",
                http_status=401,
            )
        if not result.access_token:
            raise AuthenticationError(code="AUTH_NO_TOKEN", message="auth response has no accessToken")
        logger.info("auth.exchange.ok", extra={"extra": {"expires": result.expires}})
        return result.access_token
