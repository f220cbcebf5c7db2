from __future__ import annotations

from sqlalchemy.exc import OperationalError

from loyalty.api.deps import get_db_session
from loyalty.main import app


def test_liveness_and_readiness(client) -> None:
    assert client.get("/api/healthz").json()["status"] == "ok"

    response = client.get("/api/readyz")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


def test_readiness_reports_database_outage(client) -> None:
    class BrokenSession:
        def execute(self, *args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    app.dependency_overrides[get_db_session] = lambda: BrokenSession()

    response = client.get("/api/readyz")

    assert response.status_code == 503
