"""
请求 ID（与表示无关的哈希）

对 content 映射的每个字段计算 ``sha256(key) || hash(value)``，
按字节序排序后拼接再取 sha256。副本用同一算法识别请求，read_state 也以此为路径。
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from typing import Any

from src.core.candid.types import encode_uleb128


def _hash_value(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return hashlib.sha256(bytes(value)).digest()
    if isinstance(value, str):
        return hashlib.sha256(value.encode("utf-8")).digest()
    # bool 是 int 的子类，协议中没有 bool 字段
    if isinstance(value, int) and not isinstance(value, bool):
        return hashlib.sha256(encode_uleb128(value)).digest()
    if isinstance(value, (list, tuple)):
        return hashlib.sha256(b"".join(_hash_value(item) for item in value)).digest()
    if isinstance(value, Mapping):
        return hash_of_map(value)
    raise TypeError(f"无法计算请求 ID 的字段类型: {type(value).__name__}")


def hash_of_map(content: Mapping[str, Any]) -> bytes:
    pairs = sorted(
        hashlib.sha256(key.encode("utf-8")).digest() + _hash_value(value)
        for key, value in content.items()
        if value is not None
    )
    return hashlib.sha256(b"".join(pairs)).digest()


def request_id(content: Mapping[str, Any]) -> bytes:
    return hash_of_map(content)


__all__ = ["hash_of_map", "request_id"]
