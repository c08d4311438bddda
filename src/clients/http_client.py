"""
HTTP 客户端构建

每个 Agent 独占一个 httpx.AsyncClient（连接池、Keep-alive 复用），
超时与连接上限统一来自 ``src.config``。
"""

from __future__ import annotations

import ssl
from functools import lru_cache

import certifi
import httpx

from src.config import config
from src.core.logger import logger


@lru_cache(maxsize=1)
def get_ssl_context() -> ssl.SSLContext:
    """使用 certifi 证书构建 SSL 上下文（进程内复用）"""
    return ssl.create_default_context(cafile=certifi.where())


def build_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.http_connect_timeout,
        read=config.http_read_timeout,
        write=config.http_write_timeout,
        pool=config.http_pool_timeout,
    )


def build_http_client(
    base_url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    为副本端点创建 HTTP 客户端

    Args:
        base_url: 副本地址，如 http://127.0.0.1:4943
        transport: 可选的自定义传输层（测试时注入 httpx.MockTransport）
    """
    client = httpx.AsyncClient(
        base_url=base_url,
        http2=False,
        verify=get_ssl_context(),
        timeout=build_timeout(),
        limits=httpx.Limits(
            max_connections=config.http_max_connections,
            max_keepalive_connections=config.http_keepalive_connections,
            keepalive_expiry=config.http_keepalive_expiry,
        ),
        transport=transport,
        follow_redirects=True,
        headers={"Content-Type": "application/cbor"},
    )
    logger.debug(
        "HTTP客户端已创建: base_url={}, max_connections={}, keepalive={}",
        base_url,
        config.http_max_connections,
        config.http_keepalive_connections,
    )
    return client


__all__ = ["build_http_client", "build_timeout", "get_ssl_context"]
