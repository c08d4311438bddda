"""
``variant { Ok : nat; Err : text }`` 结果解码

计数器 relay canister 的三个方法都返回这一结构。解码时同时校验线上类型，
形状不符（例如 Ok 分支是 int 或 text）一律视为解码失败，而不是远程错误。
"""

from __future__ import annotations

from dataclasses import dataclass

from src.core.candid.decoder import CandidDecoder
from src.core.candid.types import CandidError, TypeCode, idl_hash

_OK_HASH = idl_hash("Ok")
_ERR_HASH = idl_hash("Err")


@dataclass(frozen=True)
class NatTextResult:
    """两分支结果: ``ok`` 与 ``err`` 恰有一个非 None"""

    ok: int | None = None
    err: str | None = None

    @property
    def is_ok(self) -> bool:
        return self.ok is not None


def decode_nat_text_result(data: bytes) -> NatTextResult:
    """
    解码 relay canister 的返回值

    Raises:
        CandidError: 字节流损坏、被截断，或类型与 ``variant { Ok : nat; Err : text }`` 不符
    """
    decoder = CandidDecoder(bytes(data), labels=("Ok", "Err"))
    values = decoder.decode()

    if not values:
        raise CandidError("响应不包含任何返回值")

    entry = decoder.resolve(decoder.arg_types[0])
    if not isinstance(entry, tuple) or entry[0] != TypeCode.VARIANT:
        raise CandidError("返回值不是 variant 类型")

    fields = dict(entry[1])
    if set(fields) - {_OK_HASH, _ERR_HASH}:
        raise CandidError("variant 含有 Ok/Err 以外的分支")
    if _OK_HASH in fields and fields[_OK_HASH] != TypeCode.NAT:
        raise CandidError("Ok 分支类型不是 nat")
    if _ERR_HASH in fields and fields[_ERR_HASH] != TypeCode.TEXT:
        raise CandidError("Err 分支类型不是 text")

    value = values[0]
    if "Ok" in value:
        return NatTextResult(ok=value["Ok"])
    return NatTextResult(err=value["Err"])


__all__ = ["NatTextResult", "decode_nat_text_result"]
