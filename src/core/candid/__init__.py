"""
Candid 编解码

    from src.core.candid import encode_args, decode_nat_text_result

    arg = encode_args(counter_principal)
    result = decode_nat_text_result(reply_bytes)
"""

from src.core.candid.decoder import CandidDecoder, decode_args
from src.core.candid.encoder import encode_args
from src.core.candid.result import NatTextResult, decode_nat_text_result
from src.core.candid.types import CandidError, TypeCode, idl_hash

__all__ = [
    "CandidDecoder",
    "CandidError",
    "NatTextResult",
    "TypeCode",
    "decode_args",
    "decode_nat_text_result",
    "encode_args",
    "idl_hash",
]
