"""
Web 服务入口

启动时解析配置并构建一次 Canister 客户端，存入 ``app.state.canister_client``，
所有请求共享该客户端。

    uvicorn src.main:app --host 127.0.0.1 --port 3000
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.api.counter.routes import router as counter_router
from src.config import config
from src.core.logger import logger
from src.services.canister import ConfigResolver, EnvConfigResolver, create_client_from_config


def create_app(resolver: ConfigResolver | None = None, **client_options: object) -> FastAPI:
    """
    创建 FastAPI 应用

    Args:
        resolver: 配置解析器，默认从环境变量读取
        **client_options: 透传给客户端构建的参数（如测试注入的 transport）
    """
    config_resolver = resolver or EnvConfigResolver()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        resolved = config_resolver.resolve()
        client = await create_client_from_config(resolved, **client_options)
        app.state.canister_client = client
        logger.info("Canister 客户端已注入应用上下文: {}", client)
        try:
            yield
        finally:
            await client.aclose()
            logger.info("Canister 客户端已关闭")

    app = FastAPI(title="Canister Counter Gateway", lifespan=lifespan)
    app.include_router(counter_router)
    return app


def main() -> None:
    import uvicorn

    uvicorn.run(create_app(), host=config.server_host, port=config.server_port)


if __name__ == "__main__":
    main()
