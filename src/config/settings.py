"""
应用配置

所有运行参数均从环境变量读取，模块级单例 ``config`` 在导入时构建：

    from src.config import config

    timeout = config.http_read_timeout
"""

from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"环境变量 {name} 必须是数字，当前值: {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"环境变量 {name} 必须是整数，当前值: {raw!r}") from None


class Config:
    """网关运行配置（HTTP 连接池、轮询节奏、服务监听地址）"""

    def __init__(self) -> None:
        # HTTP 连接参数（传输层超时是唯一的超时来源，客户端层不额外设置截止时间）
        self.http_connect_timeout = _env_float("HTTP_CONNECT_TIMEOUT", 10.0)
        self.http_read_timeout = _env_float("HTTP_READ_TIMEOUT", 60.0)
        self.http_write_timeout = _env_float("HTTP_WRITE_TIMEOUT", 60.0)
        self.http_pool_timeout = _env_float("HTTP_POOL_TIMEOUT", 10.0)
        self.http_max_connections = _env_int("HTTP_MAX_CONNECTIONS", 100)
        self.http_keepalive_connections = _env_int("HTTP_KEEPALIVE_CONNECTIONS", 20)
        self.http_keepalive_expiry = _env_float("HTTP_KEEPALIVE_EXPIRY", 30.0)

        # update 调用的 read_state 轮询节奏（秒）
        self.poll_initial_interval = _env_float("IC_POLL_INITIAL_INTERVAL", 0.5)
        self.poll_max_interval = _env_float("IC_POLL_MAX_INTERVAL", 5.0)
        self.poll_backoff_factor = _env_float("IC_POLL_BACKOFF_FACTOR", 1.4)

        # 请求过期时间（相对当前时间，秒）；副本拒绝超过 5 分钟的 ingress_expiry
        self.ingress_expiry_seconds = _env_int("IC_INGRESS_EXPIRY_SECONDS", 240)

        # read_state 证书的 time 与本地时间允许的最大偏差（秒）
        self.certificate_max_age_seconds = _env_float("IC_CERTIFICATE_MAX_AGE_SECONDS", 300.0)

        # Web 服务监听
        self.server_host = os.getenv("SERVER_HOST", "127.0.0.1")
        self.server_port = _env_int("SERVER_PORT", 3000)


config = Config()

__all__ = ["Config", "config"]
