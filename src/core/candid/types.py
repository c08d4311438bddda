"""
Candid 类型操作码与基础编码工具

类型表中原始类型以负数（SLEB128）表示，复合类型条目引用类型表下标。
"""

from __future__ import annotations

from enum import IntEnum

MAGIC = b"DIDL"


class CandidError(ValueError):
    """Candid 编解码失败"""


class TypeCode(IntEnum):
    """Candid 类型操作码"""

    NULL = -1
    BOOL = -2
    NAT = -3
    INT = -4
    NAT8 = -5
    NAT16 = -6
    NAT32 = -7
    NAT64 = -8
    INT8 = -9
    INT16 = -10
    INT32 = -11
    INT64 = -12
    FLOAT32 = -13
    FLOAT64 = -14
    TEXT = -15
    RESERVED = -16
    EMPTY = -17
    OPT = -18
    VEC = -19
    RECORD = -20
    VARIANT = -21
    FUNC = -22
    SERVICE = -23
    PRINCIPAL = -24


PRIMITIVE_CODES = frozenset(
    code for code in TypeCode if code >= TypeCode.EMPTY or code == TypeCode.PRINCIPAL
)

COMPOSITE_CODES = frozenset(
    {TypeCode.OPT, TypeCode.VEC, TypeCode.RECORD, TypeCode.VARIANT, TypeCode.FUNC, TypeCode.SERVICE}
)

# 定长整数类型: (字节数, 是否有符号)
FIXED_INT_LAYOUT: dict[TypeCode, tuple[int, bool]] = {
    TypeCode.NAT8: (1, False),
    TypeCode.NAT16: (2, False),
    TypeCode.NAT32: (4, False),
    TypeCode.NAT64: (8, False),
    TypeCode.INT8: (1, True),
    TypeCode.INT16: (2, True),
    TypeCode.INT32: (4, True),
    TypeCode.INT64: (8, True),
}


def idl_hash(label: str) -> int:
    """字段名哈希: sum(byte * 223^k) mod 2^32"""
    h = 0
    for byte in label.encode("utf-8"):
        h = (h * 223 + byte) & 0xFFFFFFFF
    return h


def encode_uleb128(value: int) -> bytes:
    if value < 0:
        raise CandidError(f"ULEB128 不能编码负数: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_sleb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        done = (value == 0 and not byte & 0x40) or (value == -1 and byte & 0x40)
        if done:
            out.append(byte)
            return bytes(out)
        out.append(byte | 0x80)


__all__ = [
    "MAGIC",
    "CandidError",
    "TypeCode",
    "PRIMITIVE_CODES",
    "COMPOSITE_CODES",
    "FIXED_INT_LAYOUT",
    "idl_hash",
    "encode_uleb128",
    "encode_sleb128",
]
