"""
错误消息处理工具函数
"""

from __future__ import annotations


def extract_error_message(error: Exception, method: str | None = None) -> str:
    """
    从异常中提取错误消息，优先使用副本的原始响应（用于日志排查）

    Args:
        error: 异常对象
        method: 可选的远程方法名，用于构建更详细的错误消息

    Returns:
        错误消息字符串
    """
    upstream_response = getattr(error, "upstream_response", None)
    if upstream_response and isinstance(upstream_response, str) and upstream_response.strip():
        error_str = upstream_response
    else:
        # str 可能为空，如 httpx 超时异常
        error_str = str(error) or repr(error)

    if method is not None:
        return f"{method}: {error_str}"
    return error_str


def extract_client_error_message(error: Exception) -> str:
    """
    从异常中提取客户端友好的错误消息（用于 CallerResult.error / HTTP 响应）

    Args:
        error: 异常对象

    Returns:
        友好的错误消息字符串
    """
    # 优先使用 message 属性（已经是友好处理过的消息）
    message = getattr(error, "message", None)
    if message and isinstance(message, str) and message.strip():
        return message

    return str(error) or repr(error)
