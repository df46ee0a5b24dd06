from servicedesk.infra.metrics import configure_metrics
from servicedesk.main import app
from servicedesk.settings import settings


def test_metrics_endpoint_requires_token_when_configured(client):
    settings.metrics_token = "secret-token"
    settings.app_env = "prod"
    configure_metrics(True)

    unauthorized = client.get("/metrics")
    assert unauthorized.status_code == 401

    authorized = client.get("/metrics", headers={"Authorization": "Bearer secret-token"})
    assert authorized.status_code == 200

    query_token = client.get("/metrics?token=secret-token")
    assert query_token.status_code == 200


def test_metrics_path_label_uses_route_template(client_no_raise):
    settings.metrics_token = None
    metrics_client = configure_metrics(True)

    async def boom_handler(item_id: str):  # pragma: no cover - handler executed in request
        raise RuntimeError("boom")

    app.router.add_api_route("/boom/{item_id}", boom_handler, methods=["GET"])

    response = client_no_raise.get("/boom/123")
    assert response.status_code == 500

    samples = []
    for metric in metrics_client.http_5xx.collect():
        samples.extend(metric.samples)

    assert any(sample.labels.get("path") == "/boom/{item_id}" for sample in samples)

    app.router.routes = [route for route in app.router.routes if getattr(route, "path", None) != "/boom/{item_id}"]


def test_metrics_expose_notification_and_correlation_counters(client):
    settings.metrics_token = None
    metrics_client = configure_metrics(True)

    client.post("/api/email-hook", json={"from": "dealer@acme.test", "subject": "Hello"})
    body = client.get("/metrics").text

    assert 'correlation_results_total{strategy="unresolved"} 1.0' in body
    assert metrics_client.registry.get_sample_value(
        "correlation_results_total", {"strategy": "unresolved"}
    ) == 1.0


def test_metrics_endpoint_disabled_when_metrics_off(client):
    configure_metrics(False)

    response = client.get("/metrics")

    assert response.status_code == 404
