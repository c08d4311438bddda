"""
Candid 参数编码

按 Python 值推断 Candid 类型，覆盖网关调用所需的原始类型：

    Principal -> principal
    bool      -> bool
    int       -> nat（非负）/ int（负数）
    str       -> text
    bytes     -> vec nat8
    None      -> null
"""

from __future__ import annotations

from typing import Any

from src.core.candid.types import (
    MAGIC,
    CandidError,
    TypeCode,
    encode_sleb128,
    encode_uleb128,
)
from src.core.principal import Principal


def _encode_value(value: Any) -> tuple[bytes, bytes, bool]:
    """
    编码单个值

    Returns:
        (参数类型, 值字节, 是否需要类型表条目 vec nat8)
    """
    if isinstance(value, Principal):
        body = b"\x01" + encode_uleb128(len(value.raw)) + value.raw
        return encode_sleb128(TypeCode.PRINCIPAL), body, False
    # bool 必须先于 int 判断
    if isinstance(value, bool):
        return encode_sleb128(TypeCode.BOOL), b"\x01" if value else b"\x00", False
    if isinstance(value, int):
        if value >= 0:
            return encode_sleb128(TypeCode.NAT), encode_uleb128(value), False
        return encode_sleb128(TypeCode.INT), encode_sleb128(value), False
    if isinstance(value, str):
        data = value.encode("utf-8")
        return encode_sleb128(TypeCode.TEXT), encode_uleb128(len(data)) + data, False
    if isinstance(value, (bytes, bytearray)):
        return b"", encode_uleb128(len(value)) + bytes(value), True
    if value is None:
        return encode_sleb128(TypeCode.NULL), b"", False
    raise CandidError(f"不支持编码的参数类型: {type(value).__name__}")


def encode_args(*args: Any) -> bytes:
    """编码参数元组，例如 ``encode_args(counter_principal)`` 对应 Candid ``(principal)``"""
    type_table: list[bytes] = []
    arg_types: list[bytes] = []
    values: list[bytes] = []

    blob_index: int | None = None
    for arg in args:
        arg_type, body, needs_blob = _encode_value(arg)
        if needs_blob:
            if blob_index is None:
                blob_index = len(type_table)
                type_table.append(encode_sleb128(TypeCode.VEC) + encode_sleb128(TypeCode.NAT8))
            arg_type = encode_sleb128(blob_index)
        arg_types.append(arg_type)
        values.append(body)

    return b"".join(
        [
            MAGIC,
            encode_uleb128(len(type_table)),
            *type_table,
            encode_uleb128(len(arg_types)),
            *arg_types,
            *values,
        ]
    )


__all__ = ["encode_args"]
