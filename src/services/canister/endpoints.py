"""
网络端点选择

只有两个合法的副本地址:
- local: 本地开发网络，需要先获取根密钥（信任引导）
- prod:  主网，根密钥内置，无需引导
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.core.exceptions import InvalidEnvironmentError

LOCAL_REPLICA_URL = "http://127.0.0.1:4943"
MAINNET_URL = "https://ic0.app"

_LOOPBACK_MARKERS = ("127.0.0.1", "localhost")


class DeploymentEnv(str, Enum):
    """部署环境标签"""

    LOCAL = "local"
    PROD = "prod"


@dataclass(frozen=True)
class EndpointDescriptor:
    url: str
    requires_trust_bootstrap: bool


LOCAL_ENDPOINT = EndpointDescriptor(url=LOCAL_REPLICA_URL, requires_trust_bootstrap=True)
MAINNET_ENDPOINT = EndpointDescriptor(url=MAINNET_URL, requires_trust_bootstrap=False)

_ENDPOINTS: dict[DeploymentEnv, EndpointDescriptor] = {
    DeploymentEnv.LOCAL: LOCAL_ENDPOINT,
    DeploymentEnv.PROD: MAINNET_ENDPOINT,
}


def parse_environment(environment: str) -> DeploymentEnv:
    """
    解析部署环境标签（去除首尾空白，区分大小写）

    Raises:
        InvalidEnvironmentError: 不是 "local" / "prod"，消息中包含原始值
    """
    if isinstance(environment, str):
        try:
            return DeploymentEnv(environment.strip())
        except ValueError:
            pass
    raise InvalidEnvironmentError(str(environment))


def select_endpoint(environment: str) -> EndpointDescriptor:
    return _ENDPOINTS[parse_environment(environment)]


def requires_trust_bootstrap(url: str) -> bool:
    """根据地址推断是否为本地网络（需要获取根密钥）"""
    return any(marker in url for marker in _LOOPBACK_MARKERS)


__all__ = [
    "DeploymentEnv",
    "EndpointDescriptor",
    "LOCAL_ENDPOINT",
    "LOCAL_REPLICA_URL",
    "MAINNET_ENDPOINT",
    "MAINNET_URL",
    "parse_environment",
    "requires_trust_bootstrap",
    "select_endpoint",
]
