from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from flowsprint.apps.api_server import create_app
from flowsprint.apps.runtime_support import build_gateway_runtime
from flowsprint.core.config.schema import AppConfig
from flowsprint.core.providers.base import GenerationRequest, HealthStatus, PlainTextShape, ProviderAdapter, ProviderResponse
from flowsprint.core.runtime.errors import AdapterCallError
from flowsprint.db.models import GeneratedCode, Project

CANNED = {
    "mindmap": '{"mindmap": {"id": "root", "text": "Roadmap", "children": []}}',
    "code": "```python\ndef main():\n    return 0\n```",
    "prd": "# Executive Summary\nan app for teams\n# Timeline\nfour weeks",
}


class CannedAdapter(ProviderAdapter):
    def __init__(self, name: str, *, fail: bool = False) -> None:
        self.name = name
        self.fail = fail

    def generate(self, request: GenerationRequest) -> ProviderResponse:
        if self.fail:
            raise AdapterCallError(self.name, "connection reset")
        return ProviderResponse(provider=self.name, model=f"{self.name}-model", payload=PlainTextShape(text=CANNED[request.kind]))

    def health_check(self) -> HealthStatus:
        return HealthStatus(status="healthy")


def _runtime(tmp_path, *, fail: bool = False):
    cfg = AppConfig.model_validate({"database": {"url": f"sqlite:///{tmp_path / 'projects.db'}"}})
    adapters = [CannedAdapter(name, fail=fail) for name in ("cerebras", "openrouter", "meta-llama")]
    return build_gateway_runtime(cfg=cfg, adapters=adapters)


@pytest.fixture
def client(tmp_path):
    runtime = _runtime(tmp_path)
    with TestClient(create_app(runtime=runtime)) as c:
        yield c, runtime


NEW_PROJECT = {
    "name": "Team Tasks",
    "description": "Shared task board for small teams",
    "type": "web-app",
    "features": {"core": ["boards", "comments"]},
    "techStack": ["React", "FastAPI"],
}


def test_create_project_generates_initial_mindmap(client):
    c, _runtime = client
    resp = c.post("/projects", json=NEW_PROJECT)
    assert resp.status_code == 201
    project = resp.json()["data"]
    assert project["name"] == "Team Tasks"
    assert project["techStack"] == ["React", "FastAPI"]
    assert project["mindmap"] == {"id": "root", "text": "Roadmap", "children": []}
    assert project["progress"]["mindmapCompleted"] is True
    assert project["progress"]["percentComplete"] == 33
    assert project["aiUsage"]["totalRequests"] == 1
    assert project["aiUsage"]["cerebrasCalls"] == 1
    assert project["lastRoute"]["provider"] == "cerebras"


def test_create_project_survives_routing_failure(tmp_path):
    runtime = _runtime(tmp_path, fail=True)
    with TestClient(create_app(runtime=runtime)) as c:
        resp = c.post("/projects", json=NEW_PROJECT)
        assert resp.status_code == 201
        project = resp.json()["data"]
        assert project["mindmap"] is None
        assert project["progress"]["percentComplete"] == 0

        failed = c.post(f"/projects/{project['id']}/prd", json={})
        assert failed.status_code == 500
        assert failed.json()["code"] == "PRD_GENERATION_FAILED"


def test_list_search_update_delete(client):
    c, _runtime = client
    first = c.post("/projects", json=NEW_PROJECT).json()["data"]
    c.post("/projects", json={**NEW_PROJECT, "name": "Recipe Box", "description": "Family recipes", "type": "mobile-app"})

    listed = c.get("/projects", params={"search": "recipe"}).json()
    assert [p["name"] for p in listed["data"]] == ["Recipe Box"]
    assert listed["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}

    by_type = c.get("/projects", params={"type": "web-app", "limit": 1}).json()
    assert by_type["pagination"]["total"] == 1

    updated = c.put(f"/projects/{first['id']}", json={"status": "testing", "techStack": ["Vue"]}).json()["data"]
    assert updated["status"] == "testing"
    assert updated["techStack"] == ["Vue"]

    assert c.delete(f"/projects/{first['id']}").status_code == 200
    assert c.get(f"/projects/{first['id']}").status_code == 404
    assert c.delete(f"/projects/{first['id']}").status_code == 404


def test_prd_and_code_generation_update_progress(client):
    c, runtime = client
    project = c.post("/projects", json=NEW_PROJECT).json()["data"]
    pid = project["id"]

    prd = c.post(f"/projects/{pid}/prd", json={"complexity": "comprehensive", "targetAudience": "teams"}).json()["data"]
    assert prd["route"]["provider"] == "meta-llama"
    assert prd["prd"]["summary"] == "an app for teams"
    assert prd["project"]["progress"]["prdCompleted"] is True

    code = c.post(f"/projects/{pid}/code", json={"language": "python", "complexity": "high"}).json()["data"]
    assert code["filename"] == "team-tasks.py"
    assert code["code"] == "def main():\n    return 0"
    assert code["project"]["progress"]["percentComplete"] == 100
    assert code["project"]["aiUsage"]["metaLlamaCalls"] == 2

    files = c.get(f"/projects/{pid}/code").json()["data"]
    assert files["projectName"] == "Team Tasks"
    assert files["totalFiles"] == 1
    assert files["codeFiles"][0]["aiProvider"] == "meta-llama"

    with runtime.project_service.db_session_factory() as db:
        assert db.query(GeneratedCode).count() == 1
        assert db.get(Project, pid).total_requests == 3


def test_mindmap_regeneration_with_quality_priority(client):
    c, _runtime = client
    pid = c.post("/projects", json=NEW_PROJECT).json()["data"]["id"]
    out = c.post(f"/projects/{pid}/mindmap", json={"priority": "quality"}).json()["data"]
    assert out["route"]["provider"] == "openrouter"
    assert out["project"]["aiUsage"]["openRouterCalls"] == 1


def test_unknown_project_is_404(client):
    c, _runtime = client
    assert c.get("/projects/999").status_code == 404
    assert c.post("/projects/999/mindmap", json={}).status_code == 404
    assert c.post("/projects/999/code", json={}).status_code == 404
    assert c.get("/projects/999/code").status_code == 404


def test_project_stats(client):
    c, _runtime = client
    c.post("/projects", json=NEW_PROJECT)
    c.post("/projects", json={**NEW_PROJECT, "name": "Second"})

    stats = c.get("/projects/stats").json()["data"]
    assert stats["overview"]["totalProjects"] == 2
    assert stats["overview"]["totalAIRequests"] == 2
    assert stats["statusDistribution"] == {"planning": 2}
    assert stats["typeDistribution"] == {"web-app": 2}
    assert len(stats["recentProjects"]) == 2
