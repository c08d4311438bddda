"""
Canister 客户端异常体系

构建期错误（配置、连接、信任引导、身份解析）会阻止客户端产生；
调用期错误只影响单次调用，客户端句柄保持可用，调用方可自行重试。

    CanisterClientError
    ├── ConfigurationError
    │   ├── InvalidEnvironmentError
    │   └── MissingTargetError
    ├── ConstructionError
    │   ├── AgentCreationError
    │   ├── TrustBootstrapError
    │   └── InvalidIdentityError
    └── OperationError
        ├── RemoteCallError
        ├── DecodeError
        ├── RemoteRejectedError
        └── UnrehydratedClientError
"""

from __future__ import annotations


class CanisterClientError(Exception):
    """所有网关错误的基类，``message`` 为可直接展示给用户的文本"""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ============== 构建期错误 ==============


class ConfigurationError(CanisterClientError):
    """配置无法解析为合法的 {environment, counter, relay} 三元组"""


class InvalidEnvironmentError(ConfigurationError):
    def __init__(self, environment: str) -> None:
        super().__init__(f"无效的部署环境: {environment!r}（仅支持 'local' 或 'prod'）")
        self.environment = environment


class MissingTargetError(ConfigurationError):
    def __init__(self, key: str) -> None:
        super().__init__(f"缺少必需的配置项: {key}")
        self.key = key


class ConstructionError(CanisterClientError):
    """客户端构建失败，不会产生任何可用的客户端句柄"""


class AgentCreationError(ConstructionError):
    def __init__(self, url: str, cause: str) -> None:
        super().__init__(f"创建 Agent 失败 ({url}): {cause}")
        self.url = url
        self.cause = cause


class TrustBootstrapError(ConstructionError):
    def __init__(self, url: str, cause: str) -> None:
        super().__init__(f"获取根密钥失败 ({url}): {cause}")
        self.url = url
        self.cause = cause


class InvalidIdentityError(ConstructionError):
    """身份文本解析失败，``which`` 为 "counter" 或 "relay" """

    def __init__(self, which: str, text: str, cause: str) -> None:
        super().__init__(f"无效的 {which} canister ID {text!r}: {cause}")
        self.which = which
        self.text = text
        self.cause = cause


# ============== 调用期错误 ==============


class OperationError(CanisterClientError):
    """单次远程调用失败，客户端句柄仍然可用"""


class RemoteCallError(OperationError):
    """传输或往返失败（网络错误、HTTP 错误、请求被副本拒绝）"""

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        reject_code: int | None = None,
        upstream_response: str | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.reject_code = reject_code
        self.upstream_response = upstream_response


class DecodeError(OperationError):
    """响应字节与期望的 Candid 结构不匹配"""

    def __init__(self, cause: str) -> None:
        super().__init__(f"响应解码失败: {cause}")
        self.cause = cause


class RemoteRejectedError(OperationError):
    """远程 canister 返回了 Err 分支"""

    def __init__(self, remote_message: str, *, method: str | None = None) -> None:
        super().__init__(remote_message)
        self.remote_message = remote_message
        self.method = method


class UnrehydratedClientError(OperationError):
    """客户端由序列化形式恢复但尚未重新建立连接"""

    def __init__(self) -> None:
        super().__init__("客户端尚未重新连接，请先调用 rehydrate()")


__all__ = [
    "CanisterClientError",
    "ConfigurationError",
    "InvalidEnvironmentError",
    "MissingTargetError",
    "ConstructionError",
    "AgentCreationError",
    "TrustBootstrapError",
    "InvalidIdentityError",
    "OperationError",
    "RemoteCallError",
    "DecodeError",
    "RemoteRejectedError",
    "UnrehydratedClientError",
]
