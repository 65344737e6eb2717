"""Health probes — liveness always up, readiness follows the database."""

import gateway.infrastructure.database as db_module


async def test_liveness(client):
    resp = await client.get("/api/v1/health/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_readiness_without_database(client, monkeypatch):
    monkeypatch.setattr(db_module, "db_manager", None)
    resp = await client.get("/api/v1/health/ready")
    assert resp.status_code == 503
    assert resp.json()["reason"] == "database_unavailable"


async def test_readiness_with_database(client, test_engine, test_session_factory, monkeypatch):
    manager = db_module.DatabaseSessionManager.__new__(db_module.DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    monkeypatch.setattr(db_module, "db_manager", manager)

    resp = await client.get("/api/v1/health/ready")

    assert resp.status_code == 200
    assert resp.json()["checks"]["database"] == "healthy"
