"""
HTTP API tests using FastAPI's TestClient against an in-memory database.
"""

from unittest.mock import AsyncMock

import pytest
import yaml
from fastapi.testclient import TestClient

from pipeline_core.api import create_app

BASE = "/api/v1/pipeline"


@pytest.fixture
def client(test_settings):
    with TestClient(create_app(test_settings)) as test_client:
        yield test_client


def create_linear(client, script="def run(message):\n    return message\n"):
    pipeline = client.post(BASE, json={"name": "orders"}).json()
    pid = pipeline["pipeline_id"]
    source = client.post(f"{BASE}/{pid}/input", json={
        "name": "A", "description": "incoming orders", "topic": "t1", "broker_address": "memory://ext",
    }).json()
    transformation = client.post(f"{BASE}/{pid}/transformation", json={
        "name": "T", "python_script": script,
    }).json()
    sink = client.post(f"{BASE}/{pid}/output", json={
        "name": "B", "topic": "t2", "broker_address": "memory://ext",
    }).json()
    client.post(f"{BASE}/{pid}/flow", json={
        "start_node_type": "input", "start_node": source["input_id"],
        "end_node_type": "transformation", "end_node": transformation["transformation_id"],
    })
    client.post(f"{BASE}/{pid}/flow", json={
        "start_node_type": "transformation", "start_node": transformation["transformation_id"],
        "end_node_type": "output", "end_node": sink["output_id"],
    })
    return pid


class TestCrud:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_create_and_get_pipeline(self, client):
        response = client.post(BASE, json={"name": "orders", "description": "Order intake"})
        assert response.status_code == 201
        pid = response.json()["pipeline_id"]

        fetched = client.get(f"{BASE}/{pid}")
        assert fetched.status_code == 200
        assert fetched.json()["description"] == "Order intake"

    def test_list_pipelines_with_pagination(self, client):
        for name in ("a", "b", "c"):
            client.post(BASE, json={"name": name})
        response = client.get(BASE, params={"skip": 1, "limit": 1})
        assert [p["name"] for p in response.json()] == ["b"]

    def test_invalid_pagination(self, client):
        response = client.get(BASE, params={"limit": 0})
        assert response.status_code == 400
        assert "limit" in response.json()["message"]

    def test_not_found_body(self, client):
        response = client.get(f"{BASE}/999")
        assert response.status_code == 404
        assert response.json()["message"] == "Pipeline 999 not found"

    def test_request_validation_shape(self, client):
        response = client.post(BASE, json={})
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Request validation failed"
        assert body["details"][0]["loc"] == ["body", "name"]

    def test_unknown_node_type_in_flow(self, client):
        pid = create_linear(client)
        response = client.post(f"{BASE}/{pid}/flow", json={
            "start_node_type": "sensor", "start_node": 1, "end_node_type": "output", "end_node": 1,
        })
        assert response.status_code == 422

    def test_duplicate_node_name(self, client):
        pid = create_linear(client)
        response = client.post(f"{BASE}/{pid}/output", json={
            "name": "B", "topic": "t3", "broker_address": "memory://ext",
        })
        assert response.status_code == 409

    def test_update_and_delete_transformation(self, client):
        pid = create_linear(client)
        tid = client.get(f"{BASE}/{pid}/transformation").json()[0]["transformation_id"]

        updated = client.put(f"{BASE}/{pid}/transformation/{tid}", json={"description": "identity"})
        assert updated.status_code == 200
        assert updated.json()["description"] == "identity"

        deleted = client.delete(f"{BASE}/{pid}/transformation/{tid}")
        assert deleted.status_code == 200
        assert deleted.json() == {"message": f"Transformation {tid} deleted"}
        assert client.get(f"{BASE}/{pid}/flow").json() == []

    def test_tags(self, client):
        pid = create_linear(client)
        tag = client.post(f"{BASE}/{pid}/tag", json={"name": "prod"})
        assert tag.status_code == 201
        tag_id = tag.json()["tag_id"]

        assert [t["name"] for t in client.get(f"{BASE}/{pid}/tag").json()] == ["prod"]
        assert client.delete(f"{BASE}/{pid}/tag/{tag_id}").status_code == 200
        assert client.get(f"{BASE}/{pid}/tag/{tag_id}").status_code == 404

    def test_delete_pipeline(self, client):
        pid = create_linear(client)
        response = client.delete(f"{BASE}/{pid}")
        assert response.status_code == 200
        assert client.get(f"{BASE}/{pid}").status_code == 404


class TestLifecycleEndpoints:

    def test_validate(self, client):
        pid = create_linear(client)
        response = client.post(f"{BASE}/{pid}/validate")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "valid"
        assert body["message"].startswith("Pipeline is valid with 2 warning(s)")

    def test_validate_invalid_graph(self, client):
        pid = create_linear(client)
        output_id = client.get(f"{BASE}/{pid}/output").json()[0]["output_id"]
        tid = client.get(f"{BASE}/{pid}/transformation").json()[0]["transformation_id"]
        client.post(f"{BASE}/{pid}/flow", json={
            "start_node_type": "output", "start_node": output_id,
            "end_node_type": "transformation", "end_node": tid,
        })

        body = client.post(f"{BASE}/{pid}/validate").json()
        assert body["status"] == "invalid"
        assert "output node cannot be a flow source" in body["message"]

        start = client.post(f"{BASE}/{pid}/start")
        assert start.status_code == 422
        assert start.json()["details"]["valid"] is False

    def test_start_status_stop(self, client):
        pid = create_linear(client)

        idle = client.get(f"{BASE}/{pid}/status").json()
        assert idle == {"pipeline_id": pid, "status": "idle", "uptime": "0s"}

        started = client.post(f"{BASE}/{pid}/start")
        assert started.status_code == 200
        assert started.json()["status"] == "running"

        status = client.get(f"{BASE}/{pid}/status").json()
        assert status["status"] == "running"
        assert list(status["details"]["transformations"].values())[0]["status"] == "running"

        assert client.post(f"{BASE}/{pid}/start").status_code == 409
        assert client.delete(f"{BASE}/{pid}").status_code == 409

        stopped = client.post(f"{BASE}/{pid}/stop")
        assert stopped.status_code == 200
        assert stopped.json()["status"] == "idle"
        assert client.post(f"{BASE}/{pid}/stop").status_code == 409

    def test_start_failure_is_500(self, client):
        pid = create_linear(client, script="def run(message)\n    return message\n")
        response = client.post(f"{BASE}/{pid}/start")
        assert response.status_code == 500
        assert "failed to start" in response.json()["message"]
        assert client.get(f"{BASE}/{pid}/status").json()["status"] == "errored"


class TestImportExport:

    def test_export_then_import(self, client):
        pid = create_linear(client, script="import math\n\ndef run(message):\n    return message\n")
        client.post(f"{BASE}/{pid}/tag", json={"name": "prod"})

        exported = client.get(f"{BASE}/{pid}/export")
        assert exported.status_code == 200
        assert exported.headers["content-type"].startswith("application/x-yaml")
        document = yaml.safe_load(exported.text)
        assert document["pipeline"]["name"] == "orders"
        assert document["flows"][0] == {"from": {"type": "input", "name": "A"},
                                        "to": {"type": "transformation", "name": "T"}}

        imported = client.post(f"{BASE}/import", content=exported.text,
                               headers={"Content-Type": "application/x-yaml"})
        assert imported.status_code == 201
        new_pid = imported.json()["pipeline_id"]
        assert new_pid != pid
        assert len(client.get(f"{BASE}/{new_pid}/flow").json()) == 2
        assert client.get(f"{BASE}/{new_pid}/transformation").json()[0]["python_script"] == \
            "import math\n\ndef run(message):\n    return message\n"

    def test_import_rejects_bad_reference(self, client):
        text = yaml.safe_dump({
            "pipeline": {"name": "broken"},
            "flows": [{"from": {"type": "input", "name": "missing"}, "to": {"type": "output", "name": "B"}}],
        })
        response = client.post(f"{BASE}/import", content=text)
        assert response.status_code == 400
        assert "flows[0].from: no input named 'missing'" in response.json()["details"]
        assert client.get(BASE).json() == []

    def test_import_rejects_invalid_utf8(self, client):
        response = client.post(f"{BASE}/import", content=b"\xff\xfe")
        assert response.status_code == 400
        assert "UTF-8" in response.json()["message"]

    def test_import_rejects_non_string_keys(self, client):
        response = client.post(f"{BASE}/import", content="pipeline:\n  name: keys\ninputs:\n  - 1: x\n")
        assert response.status_code == 400
        assert response.json()["details"] == ["inputs[0]: field names must be strings"]


class TestUnexpectedErrors:

    def test_unexpected_error_has_message(self, test_settings):
        app = create_app(test_settings)
        with TestClient(app, raise_server_exceptions=False) as client:
            app.state.store.list_pipelines = AsyncMock(side_effect=RuntimeError("disk unplugged"))
            response = client.get(BASE)

        assert response.status_code == 500
        assert response.json() == {"message": "Internal server error", "details": {"error": "RuntimeError"}}
