import pytest

from src.core.principal import MAX_PRINCIPAL_BYTES, Principal, PrincipalError


class TestPrincipalText:
    def test_anonymous(self) -> None:
        assert Principal.anonymous().to_text() == "2vxsx-fae"
        assert Principal.from_text("2vxsx-fae").is_anonymous

    def test_management_canister(self) -> None:
        assert Principal.management_canister().to_text() == "aaaaa-aa"
        assert Principal.from_text("aaaaa-aa").raw == b""

    def test_canister_id(self) -> None:
        principal = Principal.from_text("rrkah-fqaaa-aaaaa-aaaaq-cai")
        assert principal.raw == bytes([0, 0, 0, 0, 0, 0, 0, 1, 1, 1])

    @pytest.mark.parametrize(
        "text",
        [
            "2vxsx-fae",
            "aaaaa-aa",
            "rrkah-fqaaa-aaaaa-aaaaq-cai",
            "ryjl3-tyaaa-aaaaa-aaaba-cai",
            "u6s2n-gx777-77774-qaaba-cai",
            "uxrrr-q7777-77774-qaaaq-cai",
        ],
    )
    def test_parse_format_parse_is_idempotent(self, text: str) -> None:
        first = Principal.from_text(text)
        second = Principal.from_text(first.to_text())
        assert first == second
        assert second.to_text() == text

    @pytest.mark.parametrize(
        "raw",
        [b"", b"\x04", b"\xff" * 10, bytes(range(MAX_PRINCIPAL_BYTES))],
    )
    def test_bytes_round_trip(self, raw: bytes) -> None:
        assert Principal.from_text(Principal(raw).to_text()).raw == raw


class TestPrincipalErrors:
    @pytest.mark.parametrize(
        "text",
        [
            "",
            "RRKAH-FQAAA-AAAAA-AAAAQ-CAI",  # 大写
            "rrkah-fqaaa-aaaaa-aaaaq-caa",  # 校验和错误
            "rrkahfqaaa-aaaaa-aaaaq-cai",  # 分组错误
            "rrkah-fqaaa-aaaaa-aaaaq-ca!",  # 非法字符
            "not a principal",
            "aa",
        ],
    )
    def test_invalid_text(self, text: str) -> None:
        with pytest.raises(PrincipalError):
            Principal.from_text(text)

    def test_too_long(self) -> None:
        with pytest.raises(PrincipalError):
            Principal(bytes(MAX_PRINCIPAL_BYTES + 1))
