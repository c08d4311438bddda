import pytest

from src.core.exceptions import InvalidEnvironmentError, MissingTargetError
from src.services.canister.config_resolver import (
    DEFAULT_LOCAL_CALLER_ID,
    DEFAULT_LOCAL_COUNTER_ID,
    EnvConfigResolver,
    ExplicitConfigResolver,
    ResolvedConfig,
)
from src.services.canister.endpoints import LOCAL_ENDPOINT, MAINNET_ENDPOINT


class TestExplicitConfigResolver:
    def test_passes_values_through_verbatim(self) -> None:
        resolver = ExplicitConfigResolver("prod", "not-validated", "also not validated")
        assert resolver.resolve() == ResolvedConfig("prod", "not-validated", "also not validated")


class TestEnvConfigResolver:
    def test_reads_all_keys(self) -> None:
        resolver = EnvConfigResolver(
            {
                "DEPLOYMENT_ENV": "prod",
                "COUNTER_CANISTER_ID": "u6s2n-gx777-77774-qaaba-cai",
                "CALLER_CANISTER_ID": "uxrrr-q7777-77774-qaaaq-cai",
            }
        )
        config = resolver.resolve()
        assert config.environment == "prod"
        assert config.counter_id_text == "u6s2n-gx777-77774-qaaba-cai"
        assert config.relay_id_text == "uxrrr-q7777-77774-qaaaq-cai"

    def test_environment_defaults_to_local(self) -> None:
        resolver = EnvConfigResolver({"COUNTER_CANISTER_ID": "a", "CALLER_CANISTER_ID": "b"})
        assert resolver.resolve().environment == "local"

    @pytest.mark.parametrize("value", ["", "   ", "\t"])
    def test_blank_environment_defaults_to_local(self, value: str) -> None:
        resolver = EnvConfigResolver(
            {"DEPLOYMENT_ENV": value, "COUNTER_CANISTER_ID": "a", "CALLER_CANISTER_ID": "b"}
        )
        assert resolver.resolve().environment == "local"

    def test_environment_is_trimmed(self) -> None:
        resolver = EnvConfigResolver(
            {"DEPLOYMENT_ENV": " prod ", "COUNTER_CANISTER_ID": "a", "CALLER_CANISTER_ID": "b"}
        )
        assert resolver.resolve().environment == "prod"

    @pytest.mark.parametrize(
        "environ, missing",
        [
            ({"CALLER_CANISTER_ID": "b"}, "COUNTER_CANISTER_ID"),
            ({"COUNTER_CANISTER_ID": "a"}, "CALLER_CANISTER_ID"),
            ({"COUNTER_CANISTER_ID": "  ", "CALLER_CANISTER_ID": "b"}, "COUNTER_CANISTER_ID"),
        ],
    )
    def test_missing_target(self, environ: dict[str, str], missing: str) -> None:
        with pytest.raises(MissingTargetError) as exc_info:
            EnvConfigResolver(environ).resolve()
        assert exc_info.value.key == missing

    def test_missing_target_does_not_fall_back_to_defaults(self) -> None:
        with pytest.raises(MissingTargetError):
            EnvConfigResolver({}).resolve()

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DEPLOYMENT_ENV", raising=False)
        monkeypatch.setenv("COUNTER_CANISTER_ID", "x")
        monkeypatch.setenv("CALLER_CANISTER_ID", "y")
        assert EnvConfigResolver().resolve() == ResolvedConfig("local", "x", "y")


class TestResolvedConfig:
    def test_default_local(self) -> None:
        config = ResolvedConfig.default_local()
        assert config.counter_id_text == DEFAULT_LOCAL_COUNTER_ID
        assert config.relay_id_text == DEFAULT_LOCAL_CALLER_ID
        assert config.endpoint() == LOCAL_ENDPOINT

    def test_default_mainnet(self) -> None:
        assert ResolvedConfig.default_mainnet().endpoint() == MAINNET_ENDPOINT

    def test_invalid_environment(self) -> None:
        with pytest.raises(InvalidEnvironmentError):
            ResolvedConfig("qa", "a", "b").endpoint()
