"""计数器 server function 端点"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from src.core.error_utils import extract_client_error_message
from src.core.exceptions import OperationError
from src.core.logger import logger
from src.services.canister import (
    CallerAction,
    CallerResult,
    CanisterClient,
    execute_counter_action,
)

router = APIRouter(prefix="/api", tags=["Counter"])


class ExecuteCallerActionRequest(BaseModel):
    action: CallerAction


def get_canister_client(request: Request) -> CanisterClient:
    """从应用上下文获取启动时构建的客户端（不按请求创建）"""
    client: CanisterClient | None = getattr(request.app.state, "canister_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Canister 客户端尚未初始化")
    return client


@router.post("/execute_counter_action", response_model=CallerResult)
async def execute_caller_action(
    payload: ExecuteCallerActionRequest,
    client: CanisterClient = Depends(get_canister_client),
) -> CallerResult:
    """执行计数器动作

    通过 relay canister 调用 counter canister。

    **请求体**
    - action (str): "Get" / "Increment" / "Decrement"

    **返回字段**
    - value (str): 计数器当前值（失败时为空字符串）
    - success (bool): canister 是否返回 Ok
    - error (Optional[str]): canister 返回的错误信息
    - action (str): 本次执行的动作

    传输失败或响应无法解码时返回 502。
    """
    try:
        return await execute_counter_action(client, payload.action)
    except OperationError as e:
        message = extract_client_error_message(e)
        logger.error("动作 {} 执行失败: {}", payload.action.value, message)
        raise HTTPException(status_code=502, detail=message) from e


@router.get("/canister/identities")
async def get_canister_identities(
    client: CanisterClient = Depends(get_canister_client),
) -> dict[str, str]:
    """返回 counter / caller canister ID 以及当前 Agent 身份"""
    counter_id, relay_id = client.identities()
    try:
        principal = client.who_am_i()
    except OperationError as e:
        raise HTTPException(status_code=503, detail=extract_client_error_message(e)) from e
    return {
        "counter_canister_id": counter_id.to_text(),
        "caller_canister_id": relay_id.to_text(),
        "agent_principal": principal.to_text(),
    }
