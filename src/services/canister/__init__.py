"""
Canister 计数器服务

使用方式:
    from src.services.canister import EnvConfigResolver, create_client_from_config

    config = EnvConfigResolver().resolve()
    client = await create_client_from_config(config)
    result = await execute_counter_action(client, CallerAction.INCREMENT)
"""

from src.services.canister.client import (
    CanisterClient,
    CanisterClientBuilder,
    ClientState,
    CounterMethod,
    create_client_from_config,
    create_local_client,
    create_mainnet_client,
)
from src.services.canister.config_resolver import (
    ConfigResolver,
    EnvConfigResolver,
    ExplicitConfigResolver,
    ResolvedConfig,
)
from src.services.canister.dispatcher import CallerAction, CallerResult, execute_counter_action
from src.services.canister.endpoints import (
    DeploymentEnv,
    EndpointDescriptor,
    requires_trust_bootstrap,
    select_endpoint,
)

__all__ = [
    # 配置
    "ConfigResolver",
    "DeploymentEnv",
    "EndpointDescriptor",
    "EnvConfigResolver",
    "ExplicitConfigResolver",
    "ResolvedConfig",
    "requires_trust_bootstrap",
    "select_endpoint",
    # 客户端
    "CanisterClient",
    "CanisterClientBuilder",
    "ClientState",
    "CounterMethod",
    "create_client_from_config",
    "create_local_client",
    "create_mainnet_client",
    # 分发
    "CallerAction",
    "CallerResult",
    "execute_counter_action",
]
