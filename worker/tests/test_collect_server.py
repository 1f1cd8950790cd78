import pytest

from poi_collector.jobs import collect_server
from poi_collector.models import RegionArea

SQUARE = [[127.0, 37.0], [127.01, 37.0], [127.01, 37.01], [127.0, 37.01], [127.0, 37.0]]


class DummySettings:
    def __init__(self, default_keyword=""):
        self.worker_port = 9000
        self.regions_file = "regions.geojson"
        self.default_keyword = default_keyword


@pytest.fixture(autouse=True)
def reset_executor(monkeypatch):
    submitted = {}

    class DummyExecutor:
        def submit(self, fn, args):
            submitted["called"] = True
            submitted["args"] = args

    monkeypatch.setattr(collect_server, "_executor", DummyExecutor())
    monkeypatch.setattr(collect_server, "get_settings", lambda: DummySettings())
    monkeypatch.setattr(
        collect_server,
        "_load_regions",
        lambda: [RegionArea(name="Jung-gu", polygons=(SQUARE,))],
    )
    yield submitted


def test_health_endpoint(reset_executor):
    client = collect_server.app.test_client()
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_enqueue_collection_validates_payload(reset_executor):
    client = collect_server.app.test_client()
    assert client.post("/collect", json={}).status_code == 400
    assert client.post("/collect", json={"region": "Jung-gu"}).status_code == 400
    assert client.post("/collect", json={"region": "Mapo-gu", "keyword": "coupon"}).status_code == 404
    assert "called" not in reset_executor


def test_enqueue_collection_queues_job(reset_executor):
    client = collect_server.app.test_client()

    response = client.post("/collect", json={"region": "jung-gu", "keyword": "coupon"})

    assert response.status_code == 202
    assert response.get_json()["data"] == {"status": "queued", "region": "Jung-gu", "keyword": "coupon"}
    assert reset_executor["called"] is True
    assert reset_executor["args"]["region"].name == "Jung-gu"
    assert reset_executor["args"]["keyword"] == "coupon"


def test_enqueue_collection_falls_back_to_default_keyword(reset_executor, monkeypatch):
    monkeypatch.setattr(collect_server, "get_settings", lambda: DummySettings(default_keyword="coupon"))
    client = collect_server.app.test_client()

    response = client.post("/collect", json={"region": "Jung-gu"})

    assert response.status_code == 202
    assert reset_executor["args"]["keyword"] == "coupon"


def test_enqueue_collection_reports_missing_regions(reset_executor, monkeypatch):
    def broken_loader():
        raise ValueError("REGIONS_FILE is not configured")

    monkeypatch.setattr(collect_server, "_load_regions", broken_loader)
    client = collect_server.app.test_client()

    response = client.post("/collect", json={"region": "Jung-gu", "keyword": "coupon"})

    assert response.status_code == 500


def test_collection_status_reports_ledger_counts(reset_executor, monkeypatch):
    class DummyLedger:
        def status_counts(self, region, keyword):
            return {"COMPLETED": 4, "SUBDIVIDED": 1}

    monkeypatch.setattr(collect_server, "ScanLedger", DummyLedger)
    client = collect_server.app.test_client()

    response = client.get("/collect/Jung-gu/status?keyword=coupon")

    assert response.status_code == 200
    assert response.get_json()["data"]["cells"] == {"COMPLETED": 4, "SUBDIVIDED": 1}
    assert client.get("/collect/Jung-gu/status").status_code == 400


def test_run_job_safe_logs_failures(monkeypatch, caplog):
    def failing_run(region, keyword):
        raise RuntimeError("boom")

    monkeypatch.setattr(collect_server, "run_collection", failing_run)

    with caplog.at_level("ERROR"):
        collect_server._run_job_safe({"region": RegionArea(name="Jung-gu"), "keyword": "coupon"})

    assert "Collection job failed" in " ".join(caplog.messages)
