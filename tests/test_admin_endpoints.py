import unittest

from fastapi.testclient import TestClient

from concordances_rw.common.config import AppConfig
from concordances_rw.concordances.app import create_app
from concordances_rw.concordances.errors import ConcordanceStoreError
from concordances_rw.concordances.health import HealthService
from concordances_rw.concordances.service import ConcordancesRwService
from concordances_rw.messaging.notifier import InMemoryNotifier
from concordances_rw.persistence.concordance_store import InMemoryConcordanceStore


class _DownStore(InMemoryConcordanceStore):
    def healthcheck(self) -> None:
        raise ConcordanceStoreError("permission denied")


class _NoTopicNotifier(InMemoryNotifier):
    def healthcheck(self) -> bool:
        return False


def _config() -> AppConfig:
    return AppConfig(app_system_code="concordances-rw", app_name="Concordances RW", store_backend="memory", notifier_backend="memory")


def _client(store=None, notifier=None) -> TestClient:
    svc = ConcordancesRwService(
        store=store if store is not None else InMemoryConcordanceStore(),
        notifier=notifier if notifier is not None else InMemoryNotifier(),
    )
    return TestClient(create_app(_config(), service=svc))


class TestAdminEndpoints(unittest.TestCase):
    def test_health_document_when_healthy(self) -> None:
        r = _client().get("/__health")
        self.assertEqual(r.status_code, 200)
        doc = r.json()
        self.assertTrue(doc["ok"])
        self.assertEqual(doc["systemCode"], "concordances-rw")
        self.assertEqual([c["id"] for c in doc["checks"]], ["concordances-store", "concordances-topic"])
        self.assertTrue(all(c["ok"] for c in doc["checks"]))

    def test_health_document_reports_failed_check(self) -> None:
        r = _client(store=_DownStore()).get("/__health")
        self.assertEqual(r.status_code, 200)
        doc = r.json()
        self.assertFalse(doc["ok"])
        store_check = doc["checks"][0]
        self.assertFalse(store_check["ok"])
        self.assertIn("permission denied", store_check["checkOutput"])

    def test_gtg(self) -> None:
        r = _client().get("/__gtg")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.text, "OK")

        r = _client(notifier=_NoTopicNotifier()).get("/__gtg")
        self.assertEqual(r.status_code, 503)
        self.assertIn("Cannot send notifications", r.text)

    def test_build_info_and_healthz(self) -> None:
        client = _client()
        info = client.get("/__build-info").json()
        self.assertEqual(info["repo_id"], "concordances-rw")
        self.assertIn("git_sha", info)

        self.assertEqual(client.get("/healthz").json(), {"status": "ok", "service": "concordances-rw"})


def test_gtg_returns_first_failure():
    health = HealthService(config=_config(), store=_DownStore(), notifier=_NoTopicNotifier())
    status = health.gtg()
    assert status.good_to_go is False
    assert status.message.startswith("Cannot ")


def test_apps_are_independent():
    a = create_app(_config(), service=ConcordancesRwService(store=InMemoryConcordanceStore(), notifier=InMemoryNotifier()))
    b = create_app(_config(), service=ConcordancesRwService(store=InMemoryConcordanceStore(), notifier=InMemoryNotifier()))
    TestClient(a).put(
        "/concordances/4f50b156-6c50-4693-b835-02f70d3f3bc0",
        json={"conceptId": "4f50b156-6c50-4693-b835-02f70d3f3bc0", "concordedIds": ["1"]},
    )
    assert len(a.state.service.store) == 1
    assert len(b.state.service.store) == 0


def test_panic_guide_comes_from_config(monkeypatch):
    monkeypatch.setenv("PANIC_GUIDE_URL", "https://ignored.example.org")
    config = AppConfig(store_backend="memory", notifier_backend="memory", panic_guide_url="https://runbooks.example.org/crw")
    svc = ConcordancesRwService(store=InMemoryConcordanceStore(), notifier=InMemoryNotifier())

    doc = TestClient(create_app(config, service=svc)).get("/__health").json()

    assert {c["panicGuide"] for c in doc["checks"]} == {"https://runbooks.example.org/crw"}
