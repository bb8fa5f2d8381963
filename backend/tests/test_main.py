import json

from jobharvest.core.settings import Settings
from jobharvest.main import build_runtime, load_job, main
from jobharvest.services.scraper import JobsChTarget


def _settings(tmp_path, **overrides):
    values = {
        "DATABASE_URL": f"sqlite:///{tmp_path / 'runtime.db'}",
        "MAX_DB_RETRIES": 2,
        "DB_RETRY_DELAY_MS": 0,
        "SHUTDOWN_TIMEOUT_SECONDS": 1,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_build_runtime_wires_components(tmp_path):
    runtime = build_runtime(_settings(tmp_path))
    try:
        assert isinstance(runtime.registry.resolve("jobs-ch"), JobsChTarget)
        assert runtime.orchestrator.registry is runtime.registry
        # Le scheduler appelle le delegator: un job inconnu est journalisé, pas levé
        assert runtime.scheduler.all_jobs == ()
        assert runtime.delegator.delegate_scheduled_job("unknown") is None
    finally:
        runtime.shutdown.initiate_shutdown()


def test_load_job(tmp_path):
    path = tmp_path / "job.json"
    path.write_text(json.dumps({
        "job_id": "j1",
        "name": "Python jobs",
        "schedule_type": "once",
        "tools": [{"type": "scraper", "keywords": ["python"], "max_pages": 2,
                   "targets": [{"target_id": "t1", "target": "jobs-ch"}]}],
    }), encoding="utf-8")

    payload = load_job(path)

    assert payload.job_id == "j1"
    assert payload.tools[0].targets[0].target == "jobs-ch"
    assert payload.tools[0].max_pages == 2


def test_run_once_with_empty_job(tmp_path, monkeypatch):
    monkeypatch.setattr("jobharvest.main.setup_logging", lambda **kwargs: None)
    monkeypatch.setattr("jobharvest.main.default_settings", _settings(tmp_path, DATABASE_URL=f"sqlite:///{tmp_path / 'cli.db'}"))
    path = tmp_path / "job.json"
    path.write_text(json.dumps({"job_id": "empty", "tools": []}), encoding="utf-8")

    assert main(["--job", str(path), "--run-once"]) == 0


def test_run_once_fails_when_results_are_not_persisted(tmp_path, monkeypatch):
    monkeypatch.setattr("jobharvest.main.setup_logging", lambda **kwargs: None)
    monkeypatch.setattr("jobharvest.main.default_settings", _settings(tmp_path, DATABASE_URL=f"sqlite:///{tmp_path / 'cli.db'}"))
    monkeypatch.setattr("jobharvest.main.Delegator.persist_result", lambda self, execution: False)
    path = tmp_path / "job.json"
    path.write_text(json.dumps({"job_id": "lost", "tools": []}), encoding="utf-8")

    assert main(["--job", str(path), "--run-once"]) == 1
