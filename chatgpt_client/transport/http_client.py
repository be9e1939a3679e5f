"""HTTP 传输层配置。

TokenCache 与 ConversationSession 共享同一个 httpx.Client（连接池），
超时策略：
- connect/read/write 使用 socket_timeout（读空闲超时）。
- pool 使用 request_timeout；单轮对话的整体截止时间由 ConversationSession 检查。
"""

from typing import Optional

import httpx


def build_timeout(cfg) -> httpx.Timeout:
    return httpx.Timeout(
        connect=cfg.socket_timeout,
        read=cfg.socket_timeout,
        write=cfg.socket_timeout,
        pool=cfg.request_timeout,
    )


def build_http_client(cfg, user_agent: Optional[str] = None) -> httpx.Client:
    """按配置创建带 User-Agent 与超时的 httpx.Client，调用方负责 close()。"""

    return httpx.Client(
        timeout=build_timeout(cfg),
        headers={"User-Agent": user_agent or cfg.user_agent},
        trust_env=False,
    )
