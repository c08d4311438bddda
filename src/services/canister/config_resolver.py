"""
Canister 配置解析

产出 {environment, counter_id_text, relay_id_text} 三元组，不做任何网络 I/O。
两种可互换的实现由宿主层选择:

- ExplicitConfigResolver: 调用方直接给出三个字符串，原样透传
- EnvConfigResolver: 从环境变量（或任意键值映射）读取

身份字符串在这里不做校验，解析推迟到客户端构建阶段。
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

from src.core.exceptions import MissingTargetError
from src.core.logger import logger
from src.services.canister.endpoints import DeploymentEnv, EndpointDescriptor, select_endpoint

ENV_KEY_DEPLOYMENT = "DEPLOYMENT_ENV"
ENV_KEY_COUNTER = "COUNTER_CANISTER_ID"
ENV_KEY_CALLER = "CALLER_CANISTER_ID"

# dfx 本地网络部署 counter / caller 时分配的 canister ID
DEFAULT_LOCAL_COUNTER_ID = "u6s2n-gx777-77774-qaaba-cai"
DEFAULT_LOCAL_CALLER_ID = "uxrrr-q7777-77774-qaaaq-cai"

# 主网部署的 canister ID
DEFAULT_MAINNET_COUNTER_ID = "rdmx6-jaaaa-aaaaa-aaadq-cai"
DEFAULT_MAINNET_CALLER_ID = "rrkah-fqaaa-aaaaa-aaaaq-cai"


@dataclass(frozen=True)
class ResolvedConfig:
    environment: str
    counter_id_text: str
    relay_id_text: str

    @classmethod
    def default_local(cls) -> ResolvedConfig:
        return cls(DeploymentEnv.LOCAL.value, DEFAULT_LOCAL_COUNTER_ID, DEFAULT_LOCAL_CALLER_ID)

    @classmethod
    def default_mainnet(cls) -> ResolvedConfig:
        return cls(DeploymentEnv.PROD.value, DEFAULT_MAINNET_COUNTER_ID, DEFAULT_MAINNET_CALLER_ID)

    def endpoint(self) -> EndpointDescriptor:
        """选择副本端点，environment 不合法时抛出 InvalidEnvironmentError"""
        return select_endpoint(self.environment)


class ConfigResolver(ABC):
    """配置解析接口"""

    @abstractmethod
    def resolve(self) -> ResolvedConfig:
        raise NotImplementedError


class ExplicitConfigResolver(ConfigResolver):
    def __init__(self, environment: str, counter_id: str, relay_id: str) -> None:
        self._config = ResolvedConfig(environment, counter_id, relay_id)

    def resolve(self) -> ResolvedConfig:
        return self._config


class EnvConfigResolver(ConfigResolver):
    """
    从环境变量解析配置

    - DEPLOYMENT_ENV 缺失或为空白时默认为 "local"
    - COUNTER_CANISTER_ID / CALLER_CANISTER_ID 缺失或为空时抛出 MissingTargetError，
      不会回退到内置默认值
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def _require(self, key: str) -> str:
        value = self._environ.get(key)
        if value is None or not value.strip():
            raise MissingTargetError(key)
        return value.strip()

    def resolve(self) -> ResolvedConfig:
        raw_environment = self._environ.get(ENV_KEY_DEPLOYMENT) or ""
        environment = raw_environment.strip() or DeploymentEnv.LOCAL.value
        counter_id = self._require(ENV_KEY_COUNTER)
        relay_id = self._require(ENV_KEY_CALLER)
        logger.info(
            "canister 配置已加载: env={}, counter={}, caller={}",
            environment,
            counter_id,
            relay_id,
        )
        return ResolvedConfig(environment, counter_id, relay_id)


__all__ = [
    "ConfigResolver",
    "DEFAULT_LOCAL_CALLER_ID",
    "DEFAULT_LOCAL_COUNTER_ID",
    "DEFAULT_MAINNET_CALLER_ID",
    "DEFAULT_MAINNET_COUNTER_ID",
    "ENV_KEY_CALLER",
    "ENV_KEY_COUNTER",
    "ENV_KEY_DEPLOYMENT",
    "EnvConfigResolver",
    "ExplicitConfigResolver",
    "ResolvedConfig",
]
