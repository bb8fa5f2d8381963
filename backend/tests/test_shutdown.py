from unittest.mock import MagicMock

from jobharvest.core.settings import settings
from jobharvest.services.shutdown import ShutdownManager


def _manager(finished=True):
    parent = MagicMock()
    parent.scheduler.stop_all.return_value = 2
    parent.delegator.shutdown.return_value = finished
    manager = ShutdownManager(parent.scheduler, parent.delegator, parent.store, timeout_seconds=3)
    return manager, parent


def test_shutdown_sequence_order():
    manager, parent = _manager()

    assert manager.initiate_shutdown() is True

    names = [call[0] for call in parent.mock_calls]
    assert names == [
        "scheduler.stop_all",
        "scheduler.shutdown",
        "delegator.shutdown",
        "store.close",
    ]
    parent.delegator.shutdown.assert_called_once_with(wait_for_jobs=True, timeout=3)
    assert manager.wait(0) is True


def test_second_shutdown_is_ignored(caplog):
    manager, parent = _manager()
    manager.initiate_shutdown()

    assert manager.initiate_shutdown() is False
    assert parent.scheduler.stop_all.call_count == 1
    assert "already in progress" in caplog.text


def test_timeout_is_reported():
    manager, parent = _manager(finished=False)

    assert manager.initiate_shutdown() is False
    parent.store.close.assert_called_once()


def test_store_is_optional():
    scheduler, delegator = MagicMock(), MagicMock()
    delegator.shutdown.return_value = True

    assert ShutdownManager(scheduler, delegator, timeout_seconds=1).initiate_shutdown() is True
    assert ShutdownManager(scheduler, delegator).timeout_seconds == settings.SHUTDOWN_TIMEOUT_SECONDS
