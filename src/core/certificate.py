"""
副本证书与哈希树

read_state 返回的证书是 CBOR 编码的 ``{tree, signature, delegation?}``。
哈希树节点为数组:

    [0]                  Empty
    [1, left, right]     Fork
    [2, label, subtree]  Labeled
    [3, value]           Leaf
    [4, hash]            Pruned

证书来自网络，所有标签、叶子值与签名都必须是字节串，否则抛出 CertificateError。
"""

from __future__ import annotations

import hashlib
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import cbor2

from src.config import config

SELF_DESCRIBE_TAG = 55799

NODE_EMPTY = 0
NODE_FORK = 1
NODE_LABELED = 2
NODE_LEAF = 3
NODE_PRUNED = 4

# BLS12-381 G1 压缩点
SIGNATURE_LENGTH = 48
# 副本根密钥: DER 封装的 BLS12-381 G2 公钥
ROOT_KEY_DER_PREFIX = bytes.fromhex(
    "308182301d060d2b0601040182dc7c0503010201060c2b0601040182dc7c05030201036100"
)
ROOT_KEY_LENGTH = len(ROOT_KEY_DER_PREFIX) + 96

_NODE_ARITY = {NODE_EMPTY: 1, NODE_FORK: 3, NODE_LABELED: 3, NODE_LEAF: 2, NODE_PRUNED: 2}


class CertificateError(ValueError):
    """证书或哈希树结构不合法"""


class LookupStatus(str, Enum):
    """路径查找结果"""

    FOUND = "found"
    ABSENT = "absent"  # 可证明不存在
    UNKNOWN = "unknown"  # 被剪枝，无法判断


@dataclass(frozen=True)
class LookupResult:
    status: LookupStatus
    value: bytes | None = None


_ABSENT = LookupResult(LookupStatus.ABSENT)
_UNKNOWN = LookupResult(LookupStatus.UNKNOWN)


# ==================== CBOR ====================


def _to_builtin(value: Any) -> Any:
    # 不同版本的 cbor2 可能把 map 解码为 dict 或 frozendict，统一转为 dict / list
    if isinstance(value, cbor2.CBORTag) and value.tag == SELF_DESCRIBE_TAG:
        return _to_builtin(value.value)
    if isinstance(value, Mapping):
        return {k: _to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_builtin(item) for item in value]
    return value


def cbor_loads(data: bytes) -> Any:
    """CBOR 解码，剥离 self-describe 标签，map 统一为 dict，数组统一为 list"""
    return _to_builtin(cbor2.loads(data))


def cbor_dumps(value: Any) -> bytes:
    """CBOR 编码，带 self-describe 标签（副本接口要求）"""
    return cbor2.dumps(cbor2.CBORTag(SELF_DESCRIBE_TAG, value))


def _as_bytes(value: Any, what: str) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise CertificateError(f"{what} 必须是字节串，实际为 {type(value).__name__}")
    return bytes(value)


# ==================== 哈希树 ====================


def _check_node(node: Any) -> list[Any]:
    if not isinstance(node, list) or not node or type(node[0]) is not int:
        raise CertificateError(f"非法的哈希树节点: {node!r:.80}")
    if node[0] not in _NODE_ARITY or len(node) != _NODE_ARITY[node[0]]:
        raise CertificateError(f"非法的哈希树节点类型: {node[0]}")
    return node


def _find_label(label: bytes, node: Any) -> LookupResult | Any:
    """在当前层查找 label，找到时返回子树"""
    node = _check_node(node)
    kind = node[0]
    if kind == NODE_LABELED:
        return node[2] if _as_bytes(node[1], "标签") == label else _ABSENT
    if kind == NODE_FORK:
        left = _find_label(label, node[1])
        if not isinstance(left, LookupResult):
            return left
        right = _find_label(label, node[2])
        if not isinstance(right, LookupResult):
            return right
        if _UNKNOWN in (left, right):
            return _UNKNOWN
        return _ABSENT
    if kind == NODE_PRUNED:
        return _UNKNOWN
    return _ABSENT


def lookup_path(path: list[bytes], tree: Any) -> LookupResult:
    """沿标签路径查找叶子值"""
    node = tree
    for label in path:
        found = _find_label(label, node)
        if isinstance(found, LookupResult):
            return found
        node = found

    node = _check_node(node)
    if node[0] == NODE_LEAF:
        return LookupResult(LookupStatus.FOUND, _as_bytes(node[1], "叶子值"))
    if node[0] == NODE_PRUNED:
        return _UNKNOWN
    return _ABSENT


def _domain_sep(name: str) -> bytes:
    return bytes([len(name)]) + name.encode("ascii")


def reconstruct(tree: Any) -> bytes:
    """计算哈希树根哈希（证书签名覆盖的内容）"""
    node = _check_node(tree)
    kind = node[0]
    if kind == NODE_EMPTY:
        return hashlib.sha256(_domain_sep("ic-hashtree-empty")).digest()
    if kind == NODE_FORK:
        return hashlib.sha256(
            _domain_sep("ic-hashtree-fork") + reconstruct(node[1]) + reconstruct(node[2])
        ).digest()
    if kind == NODE_LABELED:
        return hashlib.sha256(
            _domain_sep("ic-hashtree-labeled")
            + _as_bytes(node[1], "标签")
            + reconstruct(node[2])
        ).digest()
    if kind == NODE_LEAF:
        return hashlib.sha256(
            _domain_sep("ic-hashtree-leaf") + _as_bytes(node[1], "叶子值")
        ).digest()
    pruned = _as_bytes(node[1], "剪枝哈希")
    if len(pruned) != 32:
        raise CertificateError(f"剪枝哈希长度应为 32 字节，实际 {len(pruned)}")
    return pruned


# ==================== 证书 ====================


def _decode_leb_nat(data: bytes) -> int:
    result = 0
    shift = 0
    for byte in data:
        result |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return result
    raise CertificateError("LEB128 数值被截断")


@dataclass(frozen=True)
class Certificate:
    tree: Any
    signature: bytes
    delegation: dict[str, Any] | None = None

    @classmethod
    def from_cbor(cls, data: bytes) -> Certificate:
        try:
            decoded = cbor_loads(data)
        except (cbor2.CBORDecodeError, ValueError) as e:
            raise CertificateError(f"证书 CBOR 解码失败: {e}") from None
        if not isinstance(decoded, dict) or "tree" not in decoded or "signature" not in decoded:
            raise CertificateError("证书缺少 tree 或 signature 字段")

        delegation = decoded.get("delegation")
        if delegation is not None and not isinstance(delegation, dict):
            raise CertificateError("delegation 字段必须是 map")

        # 完整遍历一次，提前发现类型不合法的节点
        reconstruct(decoded["tree"])
        return cls(
            tree=decoded["tree"],
            signature=_as_bytes(decoded["signature"], "签名"),
            delegation=delegation,
        )

    def lookup(self, *path: bytes | str) -> LookupResult:
        labels = [p.encode("utf-8") if isinstance(p, str) else bytes(p) for p in path]
        return lookup_path(labels, self.tree)

    def root_hash(self) -> bytes:
        return reconstruct(self.tree)

    def time_ns(self) -> int:
        """证书中 ``time`` 叶子记录的副本时间（纳秒）"""
        result = self.lookup("time")
        if result.status != LookupStatus.FOUND or result.value is None:
            raise CertificateError("证书缺少 time 字段")
        return _decode_leb_nat(result.value)


def check_root_key(root_key: bytes) -> None:
    """校验根密钥是 DER 封装的 BLS12-381 公钥"""
    if len(root_key) != ROOT_KEY_LENGTH or not root_key.startswith(ROOT_KEY_DER_PREFIX):
        raise CertificateError(
            f"根密钥不是 DER 封装的 BLS12-381 公钥 ({len(root_key)} 字节)"
        )


def verify_certificate(
    certificate: Certificate,
    root_key: bytes | None,
    *,
    max_age_seconds: float | None = None,
    now_ns: int | None = None,
) -> None:
    """
    默认证书校验

    检查签名长度、委托结构、根密钥格式，以及 ``time`` 与本地时间的偏差
    不超过 max_age_seconds（默认 config.certificate_max_age_seconds）。
    BLS 签名本身的校验通过 Agent 的 verifier 参数接入。

    Raises:
        CertificateError: 任一检查失败
    """
    if len(certificate.signature) != SIGNATURE_LENGTH:
        raise CertificateError(
            f"签名长度应为 {SIGNATURE_LENGTH} 字节，实际 {len(certificate.signature)}"
        )

    if certificate.delegation is not None:
        _as_bytes(certificate.delegation.get("subnet_id"), "delegation.subnet_id")
        _as_bytes(certificate.delegation.get("certificate"), "delegation.certificate")

    if root_key is not None:
        check_root_key(root_key)

    max_age = config.certificate_max_age_seconds if max_age_seconds is None else max_age_seconds
    now = time.time_ns() if now_ns is None else now_ns
    skew = abs(now - certificate.time_ns())
    if skew > max_age * 1_000_000_000:
        raise CertificateError(f"证书时间与本地时间相差 {skew / 1e9:.1f}s，超过 {max_age}s")


__all__ = [
    "Certificate",
    "CertificateError",
    "LookupResult",
    "LookupStatus",
    "ROOT_KEY_DER_PREFIX",
    "cbor_dumps",
    "cbor_loads",
    "check_root_key",
    "lookup_path",
    "reconstruct",
    "verify_certificate",
]
