import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from selffin.api import app
from selffin.database import metadata
from selffin.models import ProjectRequest


@pytest.fixture(scope="session")
def fixtures_dir():
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "fixtures")


@pytest.fixture
def db_url(tmp_path):
    # A fresh SQLite file per test.
    db_path = tmp_path / "test.db"
    return f"sqlite:///{db_path}"


@pytest.fixture
def engine(db_url):
    engine = create_engine(db_url)
    metadata.create_all(bind=engine)
    yield engine
    metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def client(db_url, monkeypatch):
    # init_db() inside the endpoints picks the URL up from the environment.
    monkeypatch.setenv("SELFFIN_DB_URL", db_url)
    monkeypatch.setenv("SELFFIN_SIMULATION_RUNS", "300")
    with TestClient(app) as c:
        yield c


@pytest.fixture
def project_payload():
    # 2025-03-03 is a Monday.
    return {
        "name": "Mapo apartment",
        "basic_info": {
            "total_area": 24,
            "residence_status": "empty",
            "project_duration_days": 30,
            "budget": 50000000,
        },
        "spaces": [
            {"id": "kitchen", "actual_area": 10},
            {"id": "bathroom", "actual_area": 10},
        ],
        "schedule_info": {"start_date": "2025-03-03"},
    }


@pytest.fixture
def project_request(project_payload):
    return ProjectRequest.model_validate(project_payload)
