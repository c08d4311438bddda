"""
动作分发

把展示层的 CallerAction 转换为一次客户端调用，再包装为可直接渲染的 CallerResult。
远程返回的 Err 分支转为 success=False 的结果；传输、解码等其他失败继续向上抛出，
由 HTTP 边界统一映射。
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import Enum

from pydantic import BaseModel, model_validator

from src.core.exceptions import RemoteRejectedError
from src.core.logger import logger
from src.services.canister.client import CanisterClient


class CallerAction(str, Enum):
    GET = "Get"
    INCREMENT = "Increment"
    DECREMENT = "Decrement"


class CallerResult(BaseModel):
    value: str
    success: bool
    error: str | None = None
    action: CallerAction

    @model_validator(mode="after")
    def _check_consistency(self) -> CallerResult:
        if self.success and self.error is not None:
            raise ValueError("success=True 时 error 必须为空")
        if not self.success and self.error is None:
            raise ValueError("success=False 时必须提供 error")
        return self


def _operation(client: CanisterClient, action: CallerAction) -> Callable[[], Awaitable[str]]:
    operations: dict[CallerAction, Callable[[], Awaitable[str]]] = {
        CallerAction.GET: client.get,
        CallerAction.INCREMENT: client.increment,
        CallerAction.DECREMENT: client.decrement,
    }
    return operations[action]


async def execute_counter_action(client: CanisterClient, action: CallerAction) -> CallerResult:
    """执行一次计数器动作"""
    try:
        value = await _operation(client, action)()
    except RemoteRejectedError as e:
        # 远端消息原样透传，空字符串也保留
        logger.warning("动作 {} 被 canister 拒绝: {!r}", action.value, e.remote_message)
        return CallerResult(value="", success=False, error=e.remote_message, action=action)

    return CallerResult(value=value, success=True, error=None, action=action)


__all__ = ["CallerAction", "CallerResult", "execute_counter_action"]
