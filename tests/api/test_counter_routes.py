from fastapi.testclient import TestClient

from src.main import create_app
from src.services.canister import ExplicitConfigResolver
from tests.fake_replica import COUNTER_ID, RELAY_ID, FakeReplica


def make_app(replica: FakeReplica):
    return create_app(
        ExplicitConfigResolver("local", COUNTER_ID, RELAY_ID),
        transport=replica.transport,
        poll_initial_interval=0,
    )


def test_execute_counter_action(replica: FakeReplica) -> None:
    with TestClient(make_app(replica)) as client:
        response = client.post("/api/execute_counter_action", json={"action": "Increment"})
        assert response.status_code == 200
        assert response.json() == {
            "value": "1",
            "success": True,
            "error": None,
            "action": "Increment",
        }

        response = client.post("/api/execute_counter_action", json={"action": "Get"})
        assert response.json()["value"] == "1"

    # 客户端只在启动时构建一次
    assert replica.status_calls == 1


def test_remote_error_is_reported_in_body(replica: FakeReplica) -> None:
    with TestClient(make_app(replica)) as client:
        response = client.post("/api/execute_counter_action", json={"action": "Decrement"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Counter cannot go below zero"


def test_transport_failure_maps_to_502(replica: FakeReplica) -> None:
    with TestClient(make_app(replica)) as client:
        replica.call_http_error = 500
        response = client.post("/api/execute_counter_action", json={"action": "Get"})
        assert response.status_code == 502


def test_unknown_action_is_rejected(replica: FakeReplica) -> None:
    with TestClient(make_app(replica)) as client:
        response = client.post("/api/execute_counter_action", json={"action": "Reset"})
        assert response.status_code == 422


def test_identities(replica: FakeReplica) -> None:
    with TestClient(make_app(replica)) as client:
        response = client.get("/api/canister/identities")
        assert response.json() == {
            "counter_canister_id": COUNTER_ID,
            "caller_canister_id": RELAY_ID,
            "agent_principal": "2vxsx-fae",
        }
