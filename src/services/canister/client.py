"""
Canister 客户端

通过 relay (caller) canister 操作 counter canister:

    client = await CanisterClient.create(
        "http://127.0.0.1:4943",
        counter_id_text="u6s2n-gx777-77774-qaaba-cai",
        relay_id_text="uxrrr-q7777-77774-qaaaq-cai",
    )
    value = await client.increment()  # "1"

构建流程（任一步失败都不会产生客户端）:
1. 解析两个 canister ID          -> InvalidIdentityError
2. 创建 Agent                    -> AgentCreationError
3. 本地网络执行一次信任引导        -> TrustBootstrapError

三个操作（包括 get）都走 update 调用并等待终态。
本层不做重试，调用方可用同一个客户端自行重试。
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any

import httpx

from src.clients.ic_agent import Agent
from src.core.candid import CandidError, decode_nat_text_result, encode_args
from src.core.exceptions import (
    ConfigurationError,
    DecodeError,
    InvalidIdentityError,
    RemoteRejectedError,
    UnrehydratedClientError,
)
from src.core.logger import logger
from src.core.principal import Principal, PrincipalError
from src.services.canister.config_resolver import ResolvedConfig
from src.services.canister.endpoints import (
    LOCAL_REPLICA_URL,
    MAINNET_URL,
    requires_trust_bootstrap,
    select_endpoint,
)


class CounterMethod(str, Enum):
    """relay canister 暴露的方法"""

    GET = "call_get"
    INCREMENT = "call_increment"
    DECREMENT = "call_decrement"


class ClientState(str, Enum):
    READY = "ready"
    UNREHYDRATED = "unrehydrated"  # 由序列化形式恢复，连接尚未重建


def _parse_identity(which: str, text: str) -> Principal:
    try:
        return Principal.from_text(text)
    except PrincipalError as e:
        raise InvalidIdentityError(which, text, str(e)) from None


async def _connect(
    url: str,
    bootstrap: bool,
    transport: httpx.AsyncBaseTransport | None,
    agent_options: dict[str, Any],
) -> Agent:
    agent = Agent.create(url, transport=transport, **agent_options)
    if bootstrap:
        try:
            await agent.fetch_root_key()
        except BaseException:
            # 任何失败（包括取消）都关闭连接池
            await agent.aclose()
            raise
    return agent


class CanisterClient:
    """
    Canister 客户端句柄

    持有一个 Agent（连接）与两个 canister 身份。就绪后只读，可被多个协程并发共享；
    并发调用相互独立，计数器的先后顺序由远端决定。
    """

    def __init__(
        self,
        agent: Agent | None,
        counter_id: Principal,
        relay_id: Principal,
        *,
        url: str,
        trust_bootstrap: bool,
    ) -> None:
        self._agent = agent
        self._counter_id = counter_id
        self._relay_id = relay_id
        self._url = url
        self._trust_bootstrap = trust_bootstrap
        self._connect_lock = asyncio.Lock()

    # ==================== 构建 ====================

    @classmethod
    async def create(
        cls,
        endpoint_url: str,
        counter_id_text: str,
        relay_id_text: str,
        *,
        fetch_root_key: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **agent_options: Any,
    ) -> CanisterClient:
        """
        创建客户端

        Args:
            endpoint_url: 副本地址
            counter_id_text: counter canister ID 文本
            relay_id_text: relay (caller) canister ID 文本
            fetch_root_key: 是否执行信任引导，None 时根据地址是否为本地回环推断
            transport: 自定义 httpx 传输层（测试注入）
            **agent_options: 透传给 Agent 的参数（轮询间隔、证书校验钩子等）
        """
        # 身份解析先于任何网络 I/O
        counter_id = _parse_identity("counter", counter_id_text)
        relay_id = _parse_identity("relay", relay_id_text)

        bootstrap = (
            requires_trust_bootstrap(endpoint_url) if fetch_root_key is None else fetch_root_key
        )
        agent = await _connect(endpoint_url, bootstrap, transport, agent_options)

        logger.info(
            "Canister 客户端就绪: url={}, counter={}, relay={}, trust_bootstrap={}",
            endpoint_url,
            counter_id,
            relay_id,
            bootstrap,
        )
        return cls(agent, counter_id, relay_id, url=endpoint_url, trust_bootstrap=bootstrap)

    @classmethod
    def builder(cls) -> CanisterClientBuilder:
        return CanisterClientBuilder()

    # ==================== 状态 ====================

    @property
    def state(self) -> ClientState:
        return ClientState.READY if self._agent is not None else ClientState.UNREHYDRATED

    @property
    def url(self) -> str:
        return self._url

    @property
    def agent(self) -> Agent:
        if self._agent is None:
            raise UnrehydratedClientError()
        return self._agent

    async def rehydrate(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        **agent_options: Any,
    ) -> CanisterClient:
        """
        为反序列化得到的客户端重新建立连接（含信任引导），已就绪时直接返回

        并发调用只会建立一个连接，其余调用等待并复用它。
        """
        async with self._connect_lock:
            if self._agent is None:
                self._agent = await _connect(
                    self._url, self._trust_bootstrap, transport, agent_options
                )
                logger.info("Canister 客户端已重新连接: {}", self._url)
        return self

    async def aclose(self) -> None:
        if self._agent is not None:
            await self._agent.aclose()

    async def __aenter__(self) -> CanisterClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ==================== 序列化（不含连接） ====================

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self._url,
            "trust_bootstrap": self._trust_bootstrap,
            "counter_canister_id": self._counter_id.to_text(),
            "caller_canister_id": self._relay_id.to_text(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CanisterClient:
        """从 to_dict() 的结果恢复，返回的客户端处于 UNREHYDRATED 状态"""
        url = data["url"]
        return cls(
            None,
            _parse_identity("counter", data["counter_canister_id"]),
            _parse_identity("relay", data["caller_canister_id"]),
            url=url,
            trust_bootstrap=data.get("trust_bootstrap", requires_trust_bootstrap(url)),
        )

    def __getstate__(self) -> dict[str, Any]:
        state = self.__dict__.copy()
        state["_agent"] = None
        state.pop("_connect_lock", None)
        return state

    def __setstate__(self, state: dict[str, Any]) -> None:
        self.__dict__.update(state)
        self._connect_lock = asyncio.Lock()

    # ==================== 远程操作 ====================

    async def get(self) -> str:
        """读取计数器（update 调用）"""
        return await self._call(CounterMethod.GET)

    async def increment(self) -> str:
        return await self._call(CounterMethod.INCREMENT)

    async def decrement(self) -> str:
        return await self._call(CounterMethod.DECREMENT)

    async def _call(self, method: CounterMethod) -> str:
        agent = self.agent
        arg = encode_args(self._counter_id)
        reply = await agent.update_call(self._relay_id, method.value, arg)

        try:
            result = decode_nat_text_result(reply)
        except CandidError as e:
            logger.error("{} 响应解码失败: {}", method.value, e)
            raise DecodeError(str(e)) from e

        if not result.is_ok:
            logger.warning("{} 返回错误: {}", method.value, result.err)
            raise RemoteRejectedError(result.err or "", method=method.value)

        value = str(result.ok)
        logger.info("{} -> {}", method.value, value)
        return value

    # ==================== 工具方法 ====================

    def identities(self) -> tuple[Principal, Principal]:
        """返回 (counter canister ID, relay canister ID)"""
        return self._counter_id, self._relay_id

    def who_am_i(self) -> Principal:
        """当前 Agent 的调用身份"""
        return self.agent.get_principal()

    def __repr__(self) -> str:
        return (
            f"CanisterClient(url={self._url!r}, counter={self._counter_id.to_text()!r}, "
            f"relay={self._relay_id.to_text()!r}, state={self.state.value!r})"
        )


class CanisterClientBuilder:
    """
    配置驱动的客户端构建器

        client = await (
            CanisterClient.builder()
            .with_environment("local")
            .with_counter("u6s2n-gx777-77774-qaaba-cai")
            .with_relay("uxrrr-q7777-77774-qaaaq-cai")
            .build()
        )
    """

    def __init__(self) -> None:
        self._url: str | None = None
        self._counter: str | None = None
        self._relay: str | None = None
        self._trust_bootstrap: bool | None = None
        self._transport: httpx.AsyncBaseTransport | None = None
        self._agent_options: dict[str, Any] = {}

    def with_url(self, url: str) -> CanisterClientBuilder:
        self._url = url
        return self

    def with_environment(self, environment: str) -> CanisterClientBuilder:
        endpoint = select_endpoint(environment)
        self._url = endpoint.url
        self._trust_bootstrap = endpoint.requires_trust_bootstrap
        return self

    def with_config(self, config: ResolvedConfig) -> CanisterClientBuilder:
        self.with_environment(config.environment)
        self._counter = config.counter_id_text
        self._relay = config.relay_id_text
        return self

    def with_counter(self, counter_id_text: str) -> CanisterClientBuilder:
        self._counter = counter_id_text
        return self

    def with_relay(self, relay_id_text: str) -> CanisterClientBuilder:
        self._relay = relay_id_text
        return self

    def with_trust_bootstrap(self, enabled: bool) -> CanisterClientBuilder:
        self._trust_bootstrap = enabled
        return self

    def with_transport(self, transport: httpx.AsyncBaseTransport) -> CanisterClientBuilder:
        self._transport = transport
        return self

    def with_agent_options(self, **options: Any) -> CanisterClientBuilder:
        self._agent_options.update(options)
        return self

    async def build(self) -> CanisterClient:
        missing = [
            name
            for name, value in (("url", self._url), ("counter", self._counter), ("relay", self._relay))
            if value is None
        ]
        if missing:
            raise ConfigurationError(f"构建客户端缺少参数: {', '.join(missing)}")

        return await CanisterClient.create(
            self._url,  # type: ignore[arg-type]
            self._counter,  # type: ignore[arg-type]
            self._relay,  # type: ignore[arg-type]
            fetch_root_key=self._trust_bootstrap,
            transport=self._transport,
            **self._agent_options,
        )


# ==================== 便捷函数 ====================


async def create_client_from_config(config: ResolvedConfig, **kwargs: Any) -> CanisterClient:
    """按解析后的配置创建客户端，environment 不合法时在任何 I/O 之前失败"""
    endpoint = config.endpoint()
    return await CanisterClient.create(
        endpoint.url,
        config.counter_id_text,
        config.relay_id_text,
        fetch_root_key=endpoint.requires_trust_bootstrap,
        **kwargs,
    )


async def create_local_client(
    counter_id_text: str, relay_id_text: str, **kwargs: Any
) -> CanisterClient:
    return await CanisterClient.create(LOCAL_REPLICA_URL, counter_id_text, relay_id_text, **kwargs)


async def create_mainnet_client(
    counter_id_text: str, relay_id_text: str, **kwargs: Any
) -> CanisterClient:
    return await CanisterClient.create(MAINNET_URL, counter_id_text, relay_id_text, **kwargs)


__all__ = [
    "CanisterClient",
    "CanisterClientBuilder",
    "ClientState",
    "CounterMethod",
    "create_client_from_config",
    "create_local_client",
    "create_mainnet_client",
]
