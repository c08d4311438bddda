import pytest

from src.core.exceptions import InvalidEnvironmentError
from src.services.canister.endpoints import (
    LOCAL_ENDPOINT,
    MAINNET_ENDPOINT,
    requires_trust_bootstrap,
    select_endpoint,
)


class TestSelectEndpoint:
    def test_local(self) -> None:
        endpoint = select_endpoint("local")
        assert endpoint == LOCAL_ENDPOINT
        assert endpoint.url == "http://127.0.0.1:4943"
        assert endpoint.requires_trust_bootstrap is True

    def test_prod(self) -> None:
        endpoint = select_endpoint("prod")
        assert endpoint == MAINNET_ENDPOINT
        assert endpoint.url == "https://ic0.app"
        assert endpoint.requires_trust_bootstrap is False

    def test_surrounding_whitespace_is_ignored(self) -> None:
        assert select_endpoint(" prod\n") == MAINNET_ENDPOINT

    @pytest.mark.parametrize("tag", ["", "dev", "PROD", "mainnet", "staging", "local-2"])
    def test_invalid_environment_names_offending_value(self, tag: str) -> None:
        with pytest.raises(InvalidEnvironmentError) as exc_info:
            select_endpoint(tag)
        assert repr(tag) in exc_info.value.message
        assert exc_info.value.environment == tag


@pytest.mark.parametrize(
    "url, expected",
    [
        ("http://127.0.0.1:4943", True),
        ("http://localhost:8080", True),
        ("https://ic0.app", False),
        ("https://icp-api.io", False),
    ],
)
def test_requires_trust_bootstrap(url: str, expected: bool) -> None:
    assert requires_trust_bootstrap(url) is expected
