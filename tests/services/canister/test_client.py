"""
CanisterClient 测试（使用模拟副本）
"""

import asyncio
import pickle
from unittest.mock import MagicMock

import httpx
import pytest

from src.clients.ic_agent import Agent
from src.core.exceptions import (
    AgentCreationError,
    ConfigurationError,
    DecodeError,
    InvalidEnvironmentError,
    InvalidIdentityError,
    MissingTargetError,
    RemoteCallError,
    RemoteRejectedError,
    TrustBootstrapError,
    UnrehydratedClientError,
)
from src.services.canister import (
    CanisterClient,
    ClientState,
    EnvConfigResolver,
    ExplicitConfigResolver,
    create_client_from_config,
    create_local_client,
)
from tests.fake_replica import COUNTER_ID, RELAY_ID, FakeReplica

LOCAL_URL = "http://127.0.0.1:4943"
MAINNET_URL = "https://ic0.app"


async def make_client(replica: FakeReplica, url: str = LOCAL_URL) -> CanisterClient:
    return await CanisterClient.create(
        url, COUNTER_ID, RELAY_ID, transport=replica.transport, poll_initial_interval=0
    )


class TestConstruction:
    @pytest.mark.asyncio
    async def test_local_client_reaches_ready(self, replica: FakeReplica) -> None:
        client = await make_client(replica)

        assert client.state == ClientState.READY
        assert client.who_am_i().to_text() == "2vxsx-fae"
        counter, relay = client.identities()
        assert counter.to_text() == COUNTER_ID
        assert relay.to_text() == RELAY_ID

    @pytest.mark.asyncio
    async def test_local_performs_exactly_one_bootstrap(self, replica: FakeReplica) -> None:
        client = await make_client(replica)
        assert replica.status_calls == 1
        assert client.agent.root_key is not None

        await client.get()
        await client.increment()
        assert replica.status_calls == 1

    @pytest.mark.asyncio
    async def test_mainnet_skips_bootstrap(self, replica: FakeReplica) -> None:
        client = await make_client(replica, MAINNET_URL)
        assert replica.status_calls == 0
        assert client.agent.root_key is None

    @pytest.mark.asyncio
    async def test_explicit_bootstrap_flag_overrides_url(self, replica: FakeReplica) -> None:
        await CanisterClient.create(
            MAINNET_URL, COUNTER_ID, RELAY_ID, fetch_root_key=True, transport=replica.transport
        )
        assert replica.status_calls == 1

    @pytest.mark.asyncio
    async def test_bootstrap_failure_is_fatal(self, replica: FakeReplica) -> None:
        replica.status_http_error = 500
        with pytest.raises(TrustBootstrapError):
            await make_client(replica)
        assert replica.status_calls == 1
        assert replica.call_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "counter, relay, which",
        [
            ("not-a-principal", RELAY_ID, "counter"),
            (COUNTER_ID, "UXRRR-Q7777-77774-QAAAQ-CAI", "relay"),
        ],
    )
    async def test_invalid_identity_names_which(
        self, replica: FakeReplica, counter: str, relay: str, which: str
    ) -> None:
        with pytest.raises(InvalidIdentityError) as exc_info:
            await CanisterClient.create(LOCAL_URL, counter, relay, transport=replica.transport)
        assert exc_info.value.which == which
        assert replica.total_requests == 0

    @pytest.mark.asyncio
    async def test_invalid_url(self) -> None:
        with pytest.raises(AgentCreationError):
            await CanisterClient.create("ftp://example.org", COUNTER_ID, RELAY_ID)


class TestConfigDrivenConstruction:
    @pytest.mark.asyncio
    async def test_from_config(self, replica: FakeReplica) -> None:
        config = ExplicitConfigResolver("local", COUNTER_ID, RELAY_ID).resolve()
        client = await create_client_from_config(config, transport=replica.transport)
        assert client.url == LOCAL_URL
        assert replica.status_calls == 1

    @pytest.mark.asyncio
    async def test_invalid_environment_before_io(self, replica: FakeReplica) -> None:
        config = ExplicitConfigResolver("staging", COUNTER_ID, RELAY_ID).resolve()
        with pytest.raises(InvalidEnvironmentError) as exc_info:
            await create_client_from_config(config, transport=replica.transport)
        assert "staging" in exc_info.value.message
        assert replica.total_requests == 0

    @pytest.mark.asyncio
    async def test_missing_counter_fails_before_any_connection(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        agent_create = MagicMock()
        monkeypatch.setattr("src.services.canister.client.Agent.create", agent_create)

        with pytest.raises(MissingTargetError):
            config = EnvConfigResolver({"CALLER_CANISTER_ID": RELAY_ID}).resolve()
            await create_client_from_config(config)

        agent_create.assert_not_called()

    @pytest.mark.asyncio
    async def test_builder(self, replica: FakeReplica) -> None:
        client = await (
            CanisterClient.builder()
            .with_environment("prod")
            .with_counter(COUNTER_ID)
            .with_relay(RELAY_ID)
            .with_transport(replica.transport)
            .with_agent_options(poll_initial_interval=0)
            .build()
        )
        assert client.url == MAINNET_URL
        assert replica.status_calls == 0
        assert await client.get() == "0"

    @pytest.mark.asyncio
    async def test_builder_missing_fields(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            await CanisterClient.builder().with_url(LOCAL_URL).build()
        assert "counter" in exc_info.value.message
        assert "relay" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_create_local_client(self, replica: FakeReplica) -> None:
        client = await create_local_client(COUNTER_ID, RELAY_ID, transport=replica.transport)
        assert client.url == LOCAL_URL


class TestOperations:
    @pytest.mark.asyncio
    async def test_get_increment_get(self, replica: FakeReplica) -> None:
        client = await make_client(replica)

        before = await client.get()
        await client.increment()
        after = await client.get()

        assert int(after) == int(before) + 1
        assert replica.seen_methods == ["call_get", "call_increment", "call_get"]

    @pytest.mark.asyncio
    async def test_decrement(self, replica: FakeReplica) -> None:
        replica.value = 3
        client = await make_client(replica)
        assert await client.decrement() == "2"

    @pytest.mark.asyncio
    async def test_large_value_is_lossless(self, replica: FakeReplica) -> None:
        replica.value = 2**64
        client = await make_client(replica)
        assert await client.increment() == "18446744073709551617"

    @pytest.mark.asyncio
    async def test_remote_err_arm(self, replica: FakeReplica) -> None:
        client = await make_client(replica)
        with pytest.raises(RemoteRejectedError) as exc_info:
            await client.decrement()
        assert exc_info.value.remote_message == "Counter cannot go below zero"
        assert exc_info.value.method == "call_decrement"

    @pytest.mark.asyncio
    async def test_malformed_reply_is_decode_error(self, replica: FakeReplica) -> None:
        replica.reply_override = b"DIDL\x01\x6b\x02"
        client = await make_client(replica)
        with pytest.raises(DecodeError):
            await client.get()

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_client_usable(self, replica: FakeReplica) -> None:
        client = await make_client(replica)

        replica.call_http_error = 503
        with pytest.raises(RemoteCallError):
            await client.increment()

        replica.call_http_error = None
        assert await client.increment() == "1"
        assert client.state == ClientState.READY

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_client(self, replica: FakeReplica) -> None:
        replica.processing_polls = 1
        client = await make_client(replica)

        results = await asyncio.gather(*(client.increment() for _ in range(5)))

        assert sorted(results, key=int) == ["1", "2", "3", "4", "5"]
        assert await client.get() == "5"


class TestSerialization:
    @pytest.mark.asyncio
    async def test_from_dict_is_unrehydrated(self, replica: FakeReplica) -> None:
        client = await make_client(replica)
        restored = CanisterClient.from_dict(client.to_dict())

        assert restored.state == ClientState.UNREHYDRATED
        assert restored.identities() == client.identities()
        with pytest.raises(UnrehydratedClientError):
            restored.who_am_i()
        with pytest.raises(UnrehydratedClientError):
            await restored.get()

    @pytest.mark.asyncio
    async def test_rehydrate(self, replica: FakeReplica) -> None:
        client = await make_client(replica)
        restored = CanisterClient.from_dict(client.to_dict())

        await restored.rehydrate(transport=replica.transport, poll_initial_interval=0)

        assert restored.state == ClientState.READY
        assert replica.status_calls == 2
        assert await restored.increment() == "1"

    @pytest.mark.asyncio
    async def test_concurrent_rehydrate_connects_once(self, replica: FakeReplica) -> None:
        client = await make_client(replica)
        restored = CanisterClient.from_dict(client.to_dict())

        async def slow_handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            return replica.handle(request)

        transport = httpx.MockTransport(slow_handler)
        results = await asyncio.gather(
            *(restored.rehydrate(transport=transport, poll_initial_interval=0) for _ in range(3))
        )

        assert all(result is restored for result in results)
        assert restored.state == ClientState.READY
        # 原客户端一次 + 重新连接一次
        assert replica.status_calls == 2

    @pytest.mark.asyncio
    async def test_pickle_strips_connection(self, replica: FakeReplica) -> None:
        client = await make_client(replica)
        restored = pickle.loads(pickle.dumps(client))

        assert client.state == ClientState.READY
        assert restored.state == ClientState.UNREHYDRATED
        assert restored.to_dict() == client.to_dict()


@pytest.mark.asyncio
async def test_cancelled_bootstrap_closes_agent(monkeypatch: pytest.MonkeyPatch) -> None:
    closed: list[Agent] = []
    original_aclose = Agent.aclose

    async def tracking_aclose(self: Agent) -> None:
        closed.append(self)
        await original_aclose(self)

    monkeypatch.setattr(Agent, "aclose", tracking_aclose)

    started = asyncio.Event()

    async def hanging_handler(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.Event().wait()
        raise AssertionError("unreachable")

    task = asyncio.create_task(
        CanisterClient.create(
            LOCAL_URL, COUNTER_ID, RELAY_ID, transport=httpx.MockTransport(hanging_handler)
        )
    )
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(closed) == 1
