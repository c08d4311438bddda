"""
Principal（身份标识）

Principal 是不超过 29 字节的不透明标识，既可以表示调用方，也可以表示 canister。
文本形式为 ``base32(crc32_be(bytes) + bytes)``，小写、无填充，每 5 个字符以 "-" 分组，
例如 ``rrkah-fqaaa-aaaaa-aaaaq-cai``。
"""

from __future__ import annotations

import base64
import binascii
import zlib
from dataclasses import dataclass

MAX_PRINCIPAL_BYTES = 29

_ANONYMOUS_BYTES = b"\x04"
_BASE32_ALPHABET = set("abcdefghijklmnopqrstuvwxyz234567")


class PrincipalError(ValueError):
    """Principal 文本或字节不合法"""


@dataclass(frozen=True)
class Principal:
    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) > MAX_PRINCIPAL_BYTES:
            raise PrincipalError(
                f"Principal 长度不能超过 {MAX_PRINCIPAL_BYTES} 字节，当前 {len(self.raw)}"
            )

    @classmethod
    def from_text(cls, text: str) -> Principal:
        """解析文本形式，校验字母表、分组、长度与 CRC32 校验和"""
        if not isinstance(text, str) or not text:
            raise PrincipalError("Principal 文本不能为空")

        compact = text.replace("-", "")
        if not compact or any(ch not in _BASE32_ALPHABET for ch in compact):
            raise PrincipalError("包含非法字符（仅允许小写 base32 字母表与 '-'）")

        padded = compact.upper() + "=" * (-len(compact) % 8)
        try:
            decoded = base64.b32decode(padded)
        except (binascii.Error, ValueError) as e:
            raise PrincipalError(f"base32 解码失败: {e}") from None

        if len(decoded) < 4:
            raise PrincipalError("缺少 CRC32 校验和")

        checksum, raw = decoded[:4], decoded[4:]
        principal = cls(raw)
        if _crc32_bytes(raw) != checksum:
            raise PrincipalError("CRC32 校验和不匹配")

        # 只接受规范形式，避免同一身份存在多种文本表示
        if principal.to_text() != text:
            raise PrincipalError(f"非规范文本形式，应为 {principal.to_text()!r}")
        return principal

    @classmethod
    def anonymous(cls) -> Principal:
        return cls(_ANONYMOUS_BYTES)

    @classmethod
    def management_canister(cls) -> Principal:
        return cls(b"")

    @property
    def is_anonymous(self) -> bool:
        return self.raw == _ANONYMOUS_BYTES

    def to_text(self) -> str:
        encoded = base64.b32encode(_crc32_bytes(self.raw) + self.raw)
        compact = encoded.decode("ascii").rstrip("=").lower()
        return "-".join(compact[i : i + 5] for i in range(0, len(compact), 5))

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Principal({self.to_text()!r})"


def _crc32_bytes(data: bytes) -> bytes:
    return (zlib.crc32(data) & 0xFFFFFFFF).to_bytes(4, "big")


__all__ = ["MAX_PRINCIPAL_BYTES", "Principal", "PrincipalError"]
