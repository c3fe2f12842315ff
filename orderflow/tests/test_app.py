import sys

from fastapi.testclient import TestClient
from sqlalchemy import exc as sa_exc

from orderflow.app.config import Config
from orderflow.app.factory import create_app


def _app_with_failing_route(config, database, notifier, identity, mailer, retry_policy):
    app = create_app(
        config,
        database=database,
        notifier=notifier,
        identity=identity,
        mailer=mailer,
        retry_policy=retry_policy,
    )

    @app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    return app


def test_health(api):
    assert api.get("/health").json() == {"status": "ok"}


def test_health_reports_database_outage(api, database, monkeypatch):
    def down():
        raise sa_exc.OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(database, "ping", down)

    resp = api.get("/health")

    assert resp.status_code == 500
    assert resp.json()["error"] == "Database temporarily unavailable"


def test_unhandled_error_shows_details_outside_production(config, database, notifier, identity, mailer, retry_policy):
    app = _app_with_failing_route(config, database, notifier, identity, mailer, retry_policy)

    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.get("/boom")

    assert resp.status_code == 500
    assert resp.json()["error"] == "Internal Server Error"
    assert "kaboom" in resp.json()["details"]


def test_unhandled_error_hides_details_in_production(database, notifier, identity, mailer, retry_policy):
    config = Config(ENVIRONMENT="production", DATABASE_URL="sqlite://", LOG_JSON=False)
    app = _app_with_failing_route(config, database, notifier, identity, mailer, retry_policy)

    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.get("/boom")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal Server Error"}


def test_malformed_request_is_400(api):
    resp = api.get("/api/clients", params={"limit": "lots"})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request: limit"


def test_factory_import_does_not_build_the_module_app():
    # tests build their own apps; the module-level one stays unbuilt
    assert "orderflow.app.main" not in sys.modules
    assert create_app.__module__ == "orderflow.app.factory"
