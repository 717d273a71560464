import logging

import pytest

import concordances_rw.__main__ as entry


@pytest.fixture(autouse=True)
def _restore_root_handlers():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


def test_flags_override_env():
    args = entry.build_parser().parse_args(["--port", "9000", "--topic-id", "from-flag", "--store-backend", "memory"])
    env = entry.resolve_env(args, {"APP_PORT": "8080", "CONCORDANCES_TOPIC_ID": "from-env", "APP_NAME": "kept"})
    assert env["APP_PORT"] == "9000"
    assert env["CONCORDANCES_TOPIC_ID"] == "from-flag"
    assert env["STORE_BACKEND"] == "memory"
    assert env["APP_NAME"] == "kept"


def test_main_exits_on_missing_contract(monkeypatch, capsys):
    for name in ("FIRESTORE_PROJECT_ID", "GOOGLE_CLOUD_PROJECT", "PUBSUB_PROJECT_ID", "CONCORDANCES_TOPIC_ID", "STORE_BACKEND", "NOTIFIER_BACKEND"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(entry.uvicorn, "run", lambda *a, **k: pytest.fail("server must not start"))

    with pytest.raises(SystemExit) as e:
        entry.main([])
    assert e.value.code == 1
    assert "CONTRACT_FAIL" in capsys.readouterr().out


def test_main_exits_on_bad_config(monkeypatch, capsys):
    monkeypatch.setattr(entry.uvicorn, "run", lambda *a, **k: pytest.fail("server must not start"))
    with pytest.raises(SystemExit) as e:
        entry.main(["--port", "not-a-port", "--store-backend", "memory", "--notifier-backend", "memory"])
    assert e.value.code == 1
    assert "APP_PORT" in capsys.readouterr().out


def test_main_runs_server_with_memory_backends(monkeypatch):
    calls = []
    monkeypatch.setattr(entry.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))

    entry.main(["--port", "8123", "--store-backend", "memory", "--notifier-backend", "memory", "--app-name", "CRW"])

    assert len(calls) == 1
    app, kw = calls[0]
    assert kw["host"] == "0.0.0.0"
    assert kw["port"] == 8123
    assert app.title == "CRW"


def test_publish_timeout_and_panic_guide_flags(monkeypatch):
    calls = []
    monkeypatch.setattr(entry.uvicorn, "run", lambda app, **kw: calls.append(app))
    monkeypatch.setenv("PUBSUB_PUBLISH_TIMEOUT_S", "10")

    entry.main(
        [
            "--store-backend", "memory",
            "--notifier-backend", "memory",
            "--publish-timeout-s", "2.5",
            "--panic-guide-url", "https://runbooks.example.org/concordances-rw",
        ]
    )

    config = calls[0].state.config
    assert config.publish_timeout_s == 2.5
    assert config.panic_guide_url == "https://runbooks.example.org/concordances-rw"
