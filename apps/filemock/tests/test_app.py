from __future__ import annotations

import json
import time
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from filemock.app import create_app
from filemock.config import ServerConfig


@pytest.fixture
def client(mock_root: Path) -> Iterator[TestClient]:
    app = create_app(ServerConfig(mock_root=mock_root, port=4010))
    with TestClient(app) as test_client:
        yield test_client


def _scenario_body(name: str, *configs: tuple[str, str, str, int]) -> dict:
    return {
        "name": name,
        "endpointConfigurations": [
            {"path": path, "method": method, "selectedMockFile": mock_file, "delayMillisecond": delay}
            for path, method, mock_file, delay in configs
        ],
    }


def _status_file(mock_root: Path, *segments: str) -> dict:
    return json.loads((mock_root.joinpath(*segments) / "status.json").read_text(encoding="utf-8"))


# Serving


def test_serves_parameterised_and_literal_templates(client: TestClient) -> None:
    by_id = client.get("/pet/42")
    literal = client.get("/pet/status")

    assert by_id.status_code == 200
    assert by_id.json() == {"id": "from-template"}
    assert literal.status_code == 200
    assert literal.json() == {"status": "available"}


def test_serves_selected_file_with_headers(client: TestClient) -> None:
    response = client.get("/user/login")

    assert response.status_code == 200
    assert response.headers["X-Rate-Limit"] == "10"
    assert response.json() == {"token": "abc"}


def test_missing_selected_file_lists_alternatives(client: TestClient) -> None:
    response = client.post("/user/login")

    assert response.status_code == 404
    payload = response.json()
    assert payload["error"] == "Mock file not found"
    assert payload["file"].endswith("successful-operation-200.json")
    assert payload["availableFiles"] == ["created-201.json"]


def test_unknown_path_is_not_found(client: TestClient) -> None:
    response = client.get("/does/not/exist")

    assert response.status_code == 404
    assert response.json()["availableFiles"] == []


@pytest.mark.parametrize("path", ["/_mock/unknown", "/_mock", "/api/anything"])
def test_reserved_prefixes_are_not_served(client: TestClient, path: str) -> None:
    response = client.get(path)

    assert response.status_code == 404
    assert response.json() == {"error": "API endpoint not found"}


def test_bodyless_status_code(mock_root: Path, add_mock) -> None:
    add_mock("pet/{petId}/DELETE", "deleted-204.json", {"ignored": True})
    (mock_root / "pet" / "{petId}" / "DELETE" / "status.json").write_text(
        json.dumps({"selected": "deleted-204.json"}), encoding="utf-8"
    )

    with TestClient(create_app(ServerConfig(mock_root=mock_root))) as client:
        response = client.delete("/pet/1")

    assert response.status_code == 204
    assert response.content == b""


# Status and delay management


def test_update_switches_selected_mock(client: TestClient, mock_root: Path) -> None:
    response = client.post(
        "/_mock/update",
        json={"path": "/pet/{petId}", "method": "GET", "mockFile": "not-found-404.json"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == {"selected": "not-found-404.json"}
    assert _status_file(mock_root, "pet", "{petId}", "GET") == {"selected": "not-found-404.json"}
    served = client.get("/pet/9")
    assert served.status_code == 404
    assert served.json() == {"error": "missing"}


def test_update_rejects_unknown_file_and_bad_delay(client: TestClient) -> None:
    unknown = client.post("/_mock/update", json={"path": "/pet/status", "method": "GET", "mockFile": "nope-200.json"})
    bad_delay = client.post("/_mock/update", json={"path": "/pet/status", "method": "GET", "delayMillisecond": 60001})

    assert unknown.status_code == 400
    assert unknown.json()["error"] == "Mock file not found"
    assert bad_delay.status_code == 400
    assert bad_delay.json() == {"error": "Delay must be between 0 and 60000 milliseconds"}


def test_status_reports_current_mock(client: TestClient) -> None:
    response = client.get("/_mock/status", params={"path": "/user/login", "method": "GET"})
    defaulted = client.get("/_mock/status", params={"path": "/pet/status", "method": "GET"})
    missing = client.get("/_mock/status", params={"path": "/user/login"})

    assert response.json() == {
        "path": "/user/login",
        "method": "GET",
        "currentMock": "logged-in-200.json",
        "delayMillisecond": 0,
    }
    assert defaulted.json()["currentMock"] == "successful-operation-200.json"
    assert missing.status_code == 400
    assert missing.json()["error"].startswith("Validation failed: method")


def test_set_delay_persists_and_delays(client: TestClient, mock_root: Path) -> None:
    response = client.post("/_mock/set-delay", json={"path": "/pet/status", "method": "GET", "delayMillisecond": 80})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Delay set to 80ms"}
    assert _status_file(mock_root, "pet", "status", "GET") == {
        "selected": "successful-operation-200.json",
        "delayMillisecond": 80,
    }
    started = time.monotonic()
    assert client.get("/pet/status").status_code == 200
    assert time.monotonic() - started >= 0.07


def test_set_delay_validates_range(client: TestClient) -> None:
    response = client.post("/_mock/set-delay", json={"path": "/pet/status", "method": "GET", "delayMillisecond": -1})

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"].startswith("Validation failed: delayMillisecond")
    assert payload["details"][0]["field"] == "delayMillisecond"


@pytest.mark.parametrize("path", ["/../outside", "/pet/status/", "/pet//status", "/pet/sta.tus", "pet/status"])
def test_management_paths_must_map_inside_mock_root(client: TestClient, mock_root: Path, path: str) -> None:
    set_delay = client.post("/_mock/set-delay", json={"path": path, "method": "GET", "delayMillisecond": 5})
    update = client.post("/_mock/update", json={"path": path, "method": "GET", "delayMillisecond": 5})
    scenario = client.post("/_mock/scenarios", json=_scenario_body("escape", (path, "GET", "ok-200.json", 0)))
    status = client.get("/_mock/status", params={"path": path, "method": "GET"})

    assert [set_delay.status_code, update.status_code, scenario.status_code, status.status_code] == [400] * 4
    assert set_delay.json()["error"].startswith("Validation failed: path")
    assert not (mock_root.parent / "outside").exists()
    assert not (mock_root / "scenario").exists()
    assert not (mock_root / "pet" / "status" / "GET" / "status.json").exists()


@pytest.mark.parametrize(
    "body",
    [
        {"path": "/pet/status", "method": "GET", "mockFile": "../../{petId}/GET/not-found-404.json"},
        {"path": "/pet/status", "method": "GET", "mockFile": "notes.txt"},
        {"path": "/pet/status", "method": "../GET", "delayMillisecond": 5},
    ],
)
def test_update_rejects_file_and_method_outside_endpoint(client: TestClient, mock_root: Path, body: dict) -> None:
    response = client.post("/_mock/update", json=body)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Validation failed")
    assert not (mock_root / "pet" / "status" / "GET" / "status.json").exists()


def test_update_accepts_lowercase_method(client: TestClient, mock_root: Path) -> None:
    response = client.post("/_mock/update", json={"path": "/pet/status", "method": "get", "delayMillisecond": 5})

    assert response.status_code == 200
    assert _status_file(mock_root, "pet", "status", "GET")["delayMillisecond"] == 5


def test_unmatched_paths_are_not_cached(client: TestClient) -> None:
    cache = client.app.state.mock.status_store.cache
    before = len(cache)

    for index in range(3):
        assert client.get(f"/nothing/here-{index}").status_code == 404

    assert len(cache) == before


def test_list_endpoints(client: TestClient) -> None:
    response = client.get("/_mock/endpoints")

    assert response.status_code == 200
    endpoints = {(item["method"], item["path"]): item for item in response.json()}
    assert list(endpoints) == [
        ("GET", "/pet/findByTag"),
        ("GET", "/pet/status"),
        ("GET", "/pet/{petId}"),
        ("GET", "/user/login"),
        ("POST", "/user/login"),
    ]
    assert endpoints[("GET", "/user/login")]["currentMock"] == "logged-in-200.json"
    assert endpoints[("GET", "/pet/{petId}")]["availableMocks"] == [
        "not-found-404.json",
        "successful-operation-200.json",
    ]
    assert endpoints[("GET", "/pet/status")]["currentMock"] == "successful-operation-200.json"


# Endpoint generation


def test_create_endpoint_scaffolds_files(client: TestClient, mock_root: Path) -> None:
    response = client.post("/_mock/endpoints", json={"path": "/store/order/{orderId}", "method": "GET"})

    assert response.status_code == 201
    endpoint = response.json()["endpoint"]
    assert endpoint["availableAt"] == "http://localhost:4010/store/order/123"
    assert endpoint["filesCreated"] == ["success-200.json", "unexpected-error-default.json", "status.json"]
    assert _status_file(mock_root, "store", "order", "{orderId}", "GET") == {
        "selected": "success-200.json",
        "delayMillisecond": 0,
    }
    served = client.get("/store/order/77")
    assert served.status_code == 200
    assert served.json() == {"status": "success", "message": "Mock response"}


def test_create_endpoint_conflict(client: TestClient) -> None:
    response = client.post("/_mock/endpoints", json={"path": "/user/login", "method": "GET"})

    assert response.status_code == 409
    payload = response.json()
    assert payload["error"] == "Endpoint already exists"
    assert payload["existingEndpoint"]["method"] == "GET"


@pytest.mark.parametrize(
    "body",
    [
        {"path": "no-slash", "method": "GET"},
        {"path": "/has space", "method": "GET"},
        {"path": "/_mock/endpoints", "method": "GET"},
        {"path": "/ok", "method": "TRACE"},
    ],
)
def test_create_endpoint_validation(client: TestClient, body: dict) -> None:
    response = client.post("/_mock/endpoints", json=body)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Validation failed")


# Scenarios


def test_create_scenario_applies_and_activates(client: TestClient, mock_root: Path) -> None:
    response = client.post(
        "/_mock/scenarios",
        json=_scenario_body("pet-missing", ("/pet/{petId}", "GET", "not-found-404.json", 0)),
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["message"] == 'Scenario "pet-missing" created and activated'
    assert payload["scenario"]["metadata"]["version"] == 1
    assert (mock_root / "scenario" / "pet-missing.json").exists()
    assert _status_file(mock_root, "pet", "{petId}", "GET") == {
        "selected": "not-found-404.json",
        "delayMillisecond": 0,
    }
    assert client.get("/pet/3").status_code == 404
    assert client.get("/_mock/scenarios/active").json()["activeScenario"] == "pet-missing"


def test_create_scenario_errors(client: TestClient) -> None:
    body = _scenario_body("dup", ("/pet/status", "GET", "server-error-500.json", 0))
    assert client.post("/_mock/scenarios", json=body).status_code == 201

    duplicate = client.post("/_mock/scenarios", json=body)
    bad_name = client.post("/_mock/scenarios", json={**body, "name": "bad name!"})
    empty = client.post("/_mock/scenarios", json={"name": "empty", "endpointConfigurations": []})
    repeated = client.post(
        "/_mock/scenarios",
        json=_scenario_body(
            "repeated",
            ("/pet/status", "GET", "a-200.json", 0),
            ("/pet/status", "GET", "b-200.json", 0),
        ),
    )
    slow = client.post("/_mock/scenarios", json=_scenario_body("slow", ("/pet/status", "GET", "a-200.json", 60001)))
    not_json = client.post("/_mock/scenarios", json=_scenario_body("txt", ("/pet/status", "GET", "a-200.txt", 0)))

    assert duplicate.status_code == 409
    assert duplicate.json() == {"error": 'Scenario with name "dup" already exists'}
    assert bad_name.status_code == 400
    assert empty.status_code == 400
    assert empty.json() == {"error": "Scenario must contain at least one endpoint configuration"}
    assert repeated.status_code == 400
    assert "Duplicate endpoint: GET /pet/status" in repeated.json()["error"]
    assert slow.status_code == 400
    assert not_json.status_code == 400


def test_scenario_crud(client: TestClient, mock_root: Path) -> None:
    client.post(
        "/_mock/scenarios",
        json=_scenario_body(
            "checkout",
            ("/pet/status", "GET", "server-error-500.json", 0),
            ("/pet/{petId}", "GET", "not-found-404.json", 0),
            ("/user/login", "GET", "logged-in-200.json", 25),
        ),
    )

    updated = client.put(
        "/_mock/scenarios/checkout",
        json={"endpointConfigurations": [{"path": "/pet/status", "method": "GET", "selectedMockFile": "ok-200.json"}]},
    )
    assert updated.status_code == 200
    scenario = updated.json()["scenario"]
    assert scenario["metadata"]["version"] == 2
    assert len(scenario["endpointConfigurations"]) == 1
    assert _status_file(mock_root, "pet", "{petId}", "GET")["selected"] == "not-found-404.json"

    fetched = client.get("/_mock/scenarios/checkout")
    assert fetched.json()["scenario"]["metadata"]["version"] == 2

    listing = client.get("/_mock/scenarios").json()
    assert listing["activeScenario"] == "checkout"
    assert [item["name"] for item in listing["scenarios"]] == ["checkout"]

    deleted = client.delete("/_mock/scenarios/checkout")
    assert deleted.json() == {"success": True, "message": 'Scenario "checkout" deleted'}
    assert client.get("/_mock/scenarios/active").json()["activeScenario"] is None
    assert client.get("/_mock/scenarios/checkout").status_code == 404


def test_missing_scenario_is_not_found(client: TestClient) -> None:
    fetched = client.get("/_mock/scenarios/ghost")
    updated = client.put(
        "/_mock/scenarios/ghost",
        json={"endpointConfigurations": [{"path": "/a", "method": "GET", "selectedMockFile": "a-200.json"}]},
    )
    activated = client.put("/_mock/scenarios/ghost/activate")
    deleted = client.delete("/_mock/scenarios/ghost")

    assert fetched.status_code == 404
    assert fetched.json() == {"error": 'Scenario "ghost" not found'}
    assert {updated.status_code, activated.status_code, deleted.status_code} == {404}


def test_activate_reports_application_result(client: TestClient, mock_root: Path) -> None:
    client.post(
        "/_mock/scenarios",
        json=_scenario_body(
            "legacy",
            ("/pet/status", "GET", "server-error-500.json", 0),
            ("/removed", "GET", "ok-200.json", 0),
        ),
    )
    client.post("/_mock/scenarios", json=_scenario_body("other", ("/pet/status", "GET", "ok-200.json", 0)))

    response = client.put("/_mock/scenarios/legacy/activate")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["applicationResult"]["successes"] == ["GET /pet/status"]
    assert payload["applicationResult"]["failures"][0]["endpoint"] == "GET /removed"
    assert _status_file(mock_root, "pet", "status", "GET")["selected"] == "server-error-500.json"
    assert client.get("/_mock/scenarios/active").json()["activeScenario"] == "legacy"


def test_corrupted_scenario_file_is_server_error(client: TestClient, mock_root: Path) -> None:
    scenario_dir = mock_root / "scenario"
    scenario_dir.mkdir(exist_ok=True)
    (scenario_dir / "broken.json").write_text("{", encoding="utf-8")

    listing = client.get("/_mock/scenarios")
    single = client.get("/_mock/scenarios/broken")

    assert listing.status_code == 500
    assert listing.json()["error"] == "Scenario data corrupted"
    assert single.status_code == 500
    assert "broken.json" in single.json()["detail"]


def test_apps_do_not_share_status_cache(mock_root: Path) -> None:
    first = TestClient(create_app(ServerConfig(mock_root=mock_root)))
    second = TestClient(create_app(ServerConfig(mock_root=mock_root)))
    with first, second:
        assert second.get("/pet/status").status_code == 200
        first.post("/_mock/update", json={"path": "/pet/status", "method": "GET", "mockFile": "server-error-500.json"})

        assert first.get("/pet/status").status_code == 500
        assert second.get("/pet/status").status_code == 200


def test_scenario_with_delay_writes_status_file(client: TestClient, mock_root: Path) -> None:
    response = client.post(
        "/_mock/scenarios",
        json=_scenario_body("test-scenario", ("/pet/status", "GET", "success-200.json", 1000)),
    )

    assert response.status_code == 201
    assert response.json()["scenario"]["metadata"]["version"] == 1
    assert _status_file(mock_root, "pet", "status", "GET") == {"selected": "success-200.json", "delayMillisecond": 1000}


def test_applied_scenario_is_served_without_restart(client: TestClient) -> None:
    assert client.get("/pet/status").status_code == 200

    created = client.post(
        "/_mock/scenarios",
        json=_scenario_body("outage", ("/pet/status", "GET", "server-error-500.json", 0)),
    )
    served = client.get("/pet/status")

    assert created.status_code == 201
    assert served.status_code == 500
    assert served.json() == {"error": "boom"}


@pytest.mark.parametrize("method,url", [("GET", "/_mock/scenarios/bad.name"), ("DELETE", "/_mock/scenarios/bad.name")])
def test_scenario_name_in_url_is_validated(client: TestClient, method: str, url: str) -> None:
    response = client.request(method, url)

    assert response.status_code == 400
    assert response.json() == {"error": "Validation failed for name: must contain only letters, numbers, and hyphens"}
