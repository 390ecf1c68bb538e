# tests/test_api.py
import os

from selffin import api


def create(client, payload):
    response = client.post("/projects", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Welcome" in response.json()["message"]


def test_generate_schedule_is_stateless(client, project_payload):
    response = client.post("/generate-schedule", json=project_payload)
    assert response.status_code == 200, response.text
    data = response.json()

    assert data["schedule"]["total_duration"] == 16
    assert data["schedule"]["critical_path"][0] == "kitchen_demolition"
    assert data["weekly_plan"]["total_weeks"] == 4
    assert set(data["recommendations"]) == {"cost_saving", "time_saving", "risk_mitigation", "alternatives"}
    assert client.get("/projects").json() == {"projects": []}


def test_generate_schedule_validation(client, project_payload):
    del project_payload["basic_info"]
    assert client.post("/generate-schedule", json=project_payload).status_code == 422


def test_unknown_space_is_a_bad_request(client, project_payload):
    project_payload["spaces"] = [{"id": "garage"}]
    response = client.post("/generate-schedule", json=project_payload)
    assert response.status_code == 400
    assert response.json()["code"] == "UNKNOWN_SPACE"


def test_project_crud(client, project_payload):
    project_id = create(client, project_payload)

    listed = client.get("/projects").json()["projects"]
    assert [p["id"] for p in listed] == [project_id]
    assert client.get(f"/projects/{project_id}").json()["status"] == "draft"

    assert client.delete(f"/projects/{project_id}").status_code == 200
    response = client.get(f"/projects/{project_id}")
    assert response.status_code == 404
    assert response.json() == {"error": f"Project {project_id} not found", "code": "PROJECT_NOT_FOUND"}


def test_schedule_endpoints(client, project_payload):
    project_id = create(client, project_payload)
    assert client.get(f"/projects/{project_id}/schedule").json()["code"] == "SCHEDULE_NOT_FOUND"

    created = client.post(f"/projects/{project_id}/schedule")
    assert created.status_code == 200
    latest = client.get(f"/projects/{project_id}/schedule").json()
    assert latest["end_date"] == "2025-03-24"

    with_deadline = client.post(f"/projects/{project_id}/schedule", params={"deadline": "2025-03-14"}).json()
    demolition = next(t for t in with_deadline["tasks"] if t["id"] == "kitchen_demolition")
    assert demolition["slack"] < 0

    weeks = client.get(f"/projects/{project_id}/weekly-plan").json()
    assert weeks["total_weeks"] == 4


def test_simulation_endpoints(client, project_payload):
    project_id = create(client, project_payload)
    client.post(f"/projects/{project_id}/schedule")

    response = client.post(f"/projects/{project_id}/simulate", json={"iterations": 200, "seed": 7})
    assert response.status_code == 200, response.text
    result = response.json()
    assert result["iterations"] == 200
    assert result["planned_duration"] == 16

    bad = client.post(f"/projects/{project_id}/simulate", json={"iterations": 0})
    assert bad.status_code == 400
    assert bad.json()["code"] == "INVALID_ITERATIONS"

    scenarios = client.get(f"/projects/{project_id}/scenarios").json()["scenarios"]
    assert [s["type"] for s in scenarios] == ["optimistic", "realistic", "conservative"]


def test_what_if(client, project_payload):
    assert len(client.get("/scenarios").json()["scenarios"]) == 5
    project_id = create(client, project_payload)
    client.post(f"/projects/{project_id}/schedule")

    response = client.post(
        f"/projects/{project_id}/what-if",
        json={"scenario_id": "material-delay", "iterations": 200, "seed": 1},
    )
    assert response.status_code == 200, response.text
    analysis = response.json()
    assert analysis["original_duration"] == 16
    assert analysis["new_duration"] > 16

    unknown = client.post(f"/projects/{project_id}/what-if", json={"scenario_id": "nope"})
    assert unknown.status_code == 400


def test_progress_flow(client, project_payload):
    project_id = create(client, project_payload)
    assert client.get(f"/projects/{project_id}/progress").status_code == 404
    client.post(f"/projects/{project_id}/schedule")

    response = client.post(
        f"/projects/{project_id}/tasks/kitchen_demolition/progress",
        json={"percent_done": 100},
    )
    assert response.json()["status"] == "completed"
    assert client.get(f"/projects/{project_id}").json()["status"] == "in_progress"

    bad = client.post(f"/projects/{project_id}/tasks/kitchen_demolition/progress", json={"percent_done": 150})
    assert bad.status_code == 400

    progress = client.get(f"/projects/{project_id}/progress", params={"as_of": "2025-03-05"}).json()
    assert progress["completed_tasks"] == 1
    assert progress["as_of"] == "2025-03-05"


def test_start_date(client, project_payload):
    project_id = create(client, project_payload)
    response = client.post(f"/projects/{project_id}/start-date", json={"start_date": "2025-04-07"})
    assert response.json()["start_date"] == "2025-04-07"
    assert client.get(f"/projects/{project_id}").json()["schedule_info"]["start_date"] == "2025-04-07"

    bad = client.post(f"/projects/{project_id}/start-date", json={"start_date": "soon"})
    assert bad.status_code == 400
    assert bad.json()["code"] == "INVALID_DATE"


def test_import_tasks(client, project_payload, fixtures_dir):
    project_id = create(client, project_payload)
    path = os.path.join(fixtures_dir, "custom_tasks.csv")
    response = client.post(f"/projects/{project_id}/import-tasks", params={"file_path": path})
    assert response.json()["tasks"] == 5

    schedule = client.post(f"/projects/{project_id}/schedule").json()
    assert [t["id"] for t in schedule["tasks"]] == ["T1", "T2", "T3", "T4", "T5"]
    assert schedule["total_duration"] == 7


def test_import_tasks_rejects_bad_duration(client, project_payload, tmp_path):
    project_id = create(client, project_payload)
    for name, duration in (("negative", "-2"), ("non_numeric", "abc")):
        path = tmp_path / f"{name}.csv"
        path.write_text(f"task_id,task_name,duration\nA,Demo,{duration}\n")
        response = client.post(f"/projects/{project_id}/import-tasks", params={"file_path": str(path)})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_DURATION"


def test_advise(client, project_payload, monkeypatch):
    monkeypatch.setattr(api, "run_llm_agent", lambda project_id, prompt, engine=None: f"advice for {project_id}")

    project_id = create(client, project_payload)
    response = client.post(f"/projects/{project_id}/advise", json={"prompt": "what next?"})
    assert response.status_code == 200
    assert response.json()["analysis"] == f"advice for {project_id}"
