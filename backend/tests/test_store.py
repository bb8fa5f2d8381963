from datetime import datetime, timedelta, timezone

import pytest

from jobharvest.core.exceptions import PersistenceError
from jobharvest.services.delegator import ExecutionPayload, ExecutionSchedule, Tool, ToolTarget
from jobharvest.services.persistence import ExecutionStore


@pytest.fixture
def store(tmp_path):
    store = ExecutionStore(f"sqlite:///{tmp_path / 'executions.db'}")
    store.init_schema(max_attempts=1, delay_seconds=0)
    yield store
    store.close()


def _execution(job_id="j1"):
    delegated_at = datetime(2024, 1, 3, 9, 30, tzinfo=timezone.utc)
    return ExecutionPayload(
        job_id=job_id,
        schedule=ExecutionSchedule(type="daily", delegated_at=delegated_at, finished_at=delegated_at + timedelta(minutes=2)),
        tools=[
            Tool(
                type="scraper",
                keywords=["python"],
                targets=[
                    ToolTarget(
                        target_id="t1",
                        target="jobs-ch",
                        results=[{"result": {"title": "Dev"}, "error": None}],
                    )
                ],
            )
        ],
    )


def test_add_and_list_executions(store):
    first_id = store.add_execution(_execution())
    second_id = store.add_execution(_execution())
    store.add_execution(_execution("other"))

    executions = store.list_executions("j1")

    assert [row["id"] for row in executions] == [first_id, second_id]
    row = executions[0]
    assert row["job_id"] == "j1"
    assert row["schedule"]["type"] == "daily"
    assert row["tools"][0]["targets"][0]["results"] == [{"result": {"title": "Dev"}, "error": None}]


def test_unknown_job_has_no_executions(store):
    assert store.list_executions("nobody") == []


def test_database_errors_become_persistence_errors(tmp_path):
    # Schéma jamais créé: la table n'existe pas
    store = ExecutionStore(f"sqlite:///{tmp_path / 'empty.db'}")
    try:
        with pytest.raises(PersistenceError, match="Could not store execution of job 'j1'"):
            store.add_execution(_execution())
    finally:
        store.close()
