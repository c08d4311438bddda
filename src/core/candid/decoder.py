"""
Candid 响应解码

先解析消息头中的类型表与参数类型，再按类型读取值。
record/variant 的字段以哈希标识，调用方通过 ``labels`` 提供已知字段名以还原可读键。

解码结果的 Python 表示:
- nat/int/定长整数 -> int
- text -> str, bool -> bool, null/reserved -> None
- principal -> Principal
- opt -> 值或 None
- vec nat8 -> bytes，其他 vec -> list
- record -> dict[str | int, Any]
- variant -> dict，仅含一个键
"""

from __future__ import annotations

import struct
from collections.abc import Iterable
from typing import Any

from src.core.candid.types import (
    COMPOSITE_CODES,
    FIXED_INT_LAYOUT,
    MAGIC,
    PRIMITIVE_CODES,
    CandidError,
    TypeCode,
    idl_hash,
)
from src.core.principal import Principal, PrincipalError

# 防止恶意构造的深层嵌套类型耗尽调用栈
_MAX_DEPTH = 64
# 零宽元素（null/reserved）的 vec 不消耗字节，单独限制长度
_MAX_ZERO_SIZED_VEC = 1 << 20

_PRIMITIVE_REFS = frozenset(int(code) for code in PRIMITIVE_CODES)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def read_bytes(self, n: int) -> bytes:
        if n < 0 or self.remaining < n:
            raise CandidError(f"数据被截断: 需要 {n} 字节，剩余 {self.remaining} 字节")
        chunk = self.data[self.pos : self.pos + n]
        self.pos += n
        return chunk

    def read_byte(self) -> int:
        return self.read_bytes(1)[0]

    def read_uleb(self) -> int:
        result = 0
        shift = 0
        while True:
            byte = self.read_byte()
            result |= (byte & 0x7F) << shift
            shift += 7
            if not byte & 0x80:
                return result

    def read_sleb(self) -> int:
        result = 0
        shift = 0
        while True:
            byte = self.read_byte()
            result |= (byte & 0x7F) << shift
            shift += 7
            if not byte & 0x80:
                if byte & 0x40:
                    result -= 1 << shift
                return result


# 类型表条目: (操作码, 参数)
#   OPT/VEC: 元素类型
#   RECORD/VARIANT: [(字段哈希, 字段类型), ...]
TypeEntry = tuple[TypeCode, Any]


class CandidDecoder:
    """单条 Candid 消息的解码器"""

    def __init__(self, data: bytes, labels: Iterable[str] = ()) -> None:
        self._reader = _Reader(data)
        self._labels = {idl_hash(label): label for label in labels}
        self._table: list[TypeEntry] = []
        self.arg_types: list[int] = []

    def decode(self) -> list[Any]:
        reader = self._reader
        if reader.read_bytes(len(MAGIC)) != MAGIC:
            raise CandidError("缺少 DIDL 魔数")

        self._read_type_table()

        arg_count = reader.read_uleb()
        self.arg_types = [self._read_type_ref() for _ in range(arg_count)]

        values = [self._read_value(t, 0) for t in self.arg_types]
        if reader.remaining:
            raise CandidError(f"消息末尾存在 {reader.remaining} 字节多余数据")
        return values

    def _read_type_table(self) -> None:
        reader = self._reader
        count = reader.read_uleb()
        for _ in range(count):
            raw = reader.read_sleb()
            try:
                code = TypeCode(raw)
            except ValueError:
                raise CandidError(f"未知的类型操作码: {raw}") from None
            if code not in COMPOSITE_CODES:
                raise CandidError(f"类型表中不允许原始类型: {code.name}")

            if code in (TypeCode.OPT, TypeCode.VEC):
                self._table.append((code, reader.read_sleb()))
            elif code in (TypeCode.RECORD, TypeCode.VARIANT):
                field_count = reader.read_uleb()
                fields: list[tuple[int, int]] = []
                previous = -1
                for _ in range(field_count):
                    field_hash = reader.read_uleb()
                    if field_hash <= previous:
                        raise CandidError("字段哈希必须严格递增")
                    previous = field_hash
                    fields.append((field_hash, reader.read_sleb()))
                self._table.append((code, fields))
            else:
                raise CandidError(f"不支持的类型: {code.name}")

        # 所有引用必须落在类型表范围内
        for code, arg in self._table:
            refs = [arg] if code in (TypeCode.OPT, TypeCode.VEC) else [t for _, t in arg]
            for ref in refs:
                self._check_ref(ref)

    def _read_type_ref(self) -> int:
        ref = self._reader.read_sleb()
        self._check_ref(ref)
        return ref

    def _check_ref(self, ref: int) -> None:
        if ref >= 0:
            if ref >= len(self._table):
                raise CandidError(f"类型引用越界: {ref}")
        elif ref not in _PRIMITIVE_REFS:
            raise CandidError(f"非法的原始类型: {ref}")

    def _label(self, field_hash: int) -> str | int:
        return self._labels.get(field_hash, field_hash)

    def _read_value(self, type_ref: int, depth: int) -> Any:
        if depth > _MAX_DEPTH:
            raise CandidError("类型嵌套过深")
        if type_ref >= 0:
            return self._read_composite(self._table[type_ref], depth)
        return self._read_primitive(TypeCode(type_ref))

    def _read_primitive(self, code: TypeCode) -> Any:
        reader = self._reader
        if code in (TypeCode.NULL, TypeCode.RESERVED):
            return None
        if code == TypeCode.BOOL:
            byte = reader.read_byte()
            if byte not in (0, 1):
                raise CandidError(f"非法的 bool 值: {byte}")
            return byte == 1
        if code == TypeCode.NAT:
            return reader.read_uleb()
        if code == TypeCode.INT:
            return reader.read_sleb()
        if code in FIXED_INT_LAYOUT:
            size, signed = FIXED_INT_LAYOUT[code]
            return int.from_bytes(reader.read_bytes(size), "little", signed=signed)
        if code == TypeCode.FLOAT32:
            return struct.unpack("<f", reader.read_bytes(4))[0]
        if code == TypeCode.FLOAT64:
            return struct.unpack("<d", reader.read_bytes(8))[0]
        if code == TypeCode.TEXT:
            raw = reader.read_bytes(reader.read_uleb())
            try:
                return raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise CandidError(f"text 不是合法的 UTF-8: {e}") from None
        if code == TypeCode.PRINCIPAL:
            if reader.read_byte() != 1:
                raise CandidError("不支持不透明的 principal 引用")
            try:
                return Principal(reader.read_bytes(reader.read_uleb()))
            except PrincipalError as e:
                raise CandidError(str(e)) from None
        raise CandidError(f"无法解码类型: {code.name}")

    def _read_composite(self, entry: TypeEntry, depth: int) -> Any:
        reader = self._reader
        code, arg = entry
        if code == TypeCode.OPT:
            flag = reader.read_byte()
            if flag == 0:
                return None
            if flag != 1:
                raise CandidError(f"非法的 opt 标记: {flag}")
            return self._read_value(arg, depth + 1)
        if code == TypeCode.VEC:
            length = reader.read_uleb()
            if arg == TypeCode.NAT8:
                return reader.read_bytes(length)
            zero_sized = arg in (TypeCode.NULL, TypeCode.RESERVED)
            limit = _MAX_ZERO_SIZED_VEC if zero_sized else reader.remaining
            if length > limit:
                raise CandidError(f"vec 长度 {length} 超过剩余数据")
            return [self._read_value(arg, depth + 1) for _ in range(length)]
        if code == TypeCode.RECORD:
            return {self._label(h): self._read_value(t, depth + 1) for h, t in arg}
        # VARIANT
        index = reader.read_uleb()
        if index >= len(arg):
            raise CandidError(f"variant 下标越界: {index} (共 {len(arg)} 个分支)")
        field_hash, field_type = arg[index]
        return {self._label(field_hash): self._read_value(field_type, depth + 1)}

    def resolve(self, type_ref: int) -> TypeEntry | TypeCode:
        """将类型引用解析为类型表条目或原始类型操作码"""
        if type_ref >= 0:
            return self._table[type_ref]
        return TypeCode(type_ref)


def decode_args(data: bytes, labels: Iterable[str] = ()) -> list[Any]:
    """解码完整的 Candid 消息，返回参数值列表"""
    if not isinstance(data, (bytes, bytearray)):
        raise CandidError(f"期望 bytes，实际为 {type(data).__name__}")
    return CandidDecoder(bytes(data), labels).decode()


__all__ = ["CandidDecoder", "decode_args"]
