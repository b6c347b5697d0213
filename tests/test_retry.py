from unittest.mock import Mock

import pytest

from auditdal import ConnectionRegistry, DatabaseConfig
from auditdal.config import RetryPolicy
from auditdal.exception import ConfigurationError, DatabaseError
from auditdal.transaction import TransactionCoordinator
from auditdal.transaction.retry import retry


def test_always_failing_work_runs_max_attempts(coordinator, sleeps):
    error = RuntimeError("deadlock detected")
    work = Mock(side_effect=error)

    with pytest.raises(DatabaseError, match="after 3 attempts") as info:
        coordinator.query_with_retry(work, max_attempts=3)

    assert work.call_count == 3
    assert sleeps == pytest.approx([0.2, 0.4])
    assert info.value.attempts == 3
    assert info.value.cause is error
    assert info.value.__cause__ is error


def test_fail_once_then_succeed(coordinator, sleeps):
    work = Mock(side_effect=[RuntimeError("timeout"), "rows"])

    assert coordinator.query_with_retry(work, max_attempts=3) == "rows"
    assert work.call_count == 2
    assert sleeps == pytest.approx([0.2])


def test_work_receives_connection(coordinator, driver, sleeps):
    work = Mock(return_value=None)

    coordinator.query_with_retry(work)

    (connection,) = work.call_args.args
    assert connection.name == "primary"
    assert connection.raw is driver
    assert sleeps == []


def test_default_attempts_come_from_config(registry, sleeps):
    registry_policy = registry.config.retry
    coordinator = TransactionCoordinator(registry)
    work = Mock(side_effect=RuntimeError("down"))

    with pytest.raises(DatabaseError):
        coordinator.query_with_retry(work)

    assert work.call_count == registry_policy.max_attempts


def test_custom_policy_delays(registry, sleeps):
    coordinator = TransactionCoordinator(
        registry, retry_policy=RetryPolicy(max_attempts=4, base_delay=1)
    )

    with pytest.raises(DatabaseError, match="after 4 attempts"):
        coordinator.query_with_retry(Mock(side_effect=OSError("reset")))

    assert sleeps == [2, 4, 8]


def test_single_attempt_never_sleeps(coordinator, sleeps):
    with pytest.raises(DatabaseError, match="after 1 attempts"):
        coordinator.query_with_retry(
            Mock(side_effect=RuntimeError("x")), max_attempts=1
        )

    assert sleeps == []


def test_invalid_attempts(coordinator):
    with pytest.raises(ConfigurationError):
        coordinator.query_with_retry(Mock(), max_attempts=0)


def test_failed_attempt_refreshes_connection(registry, sleeps):
    coordinator = TransactionCoordinator(registry)
    pool = registry.get_pool()
    work = Mock(side_effect=[RuntimeError("broken pipe"), "ok"])

    assert coordinator.query_with_retry(work) == "ok"
    assert pool.released == 2
    assert pool.acquired == 2


def test_connection_kept_inside_transaction(registry, sleeps):
    coordinator = TransactionCoordinator(registry)
    pool = registry.get_pool()
    work = Mock(side_effect=[RuntimeError("lock timeout"), "ok"])

    coordinator.begin()
    assert coordinator.query_with_retry(work) == "ok"
    assert pool.released == 0
    assert pool.acquired == 1

    coordinator.commit()
    assert pool.released == 1


def test_unknown_connection_is_not_retried(registry, sleeps):
    coordinator = TransactionCoordinator(registry, "reporting")
    work = Mock()

    with pytest.raises(ConfigurationError):
        coordinator.query_with_retry(work)

    work.assert_not_called()
    assert sleeps == []


def test_retry_does_not_open_transaction(coordinator, driver, sleeps):
    coordinator.query_with_retry(lambda connection: connection.select("x"))

    assert driver.executed == ["x"]
    assert not coordinator.in_transaction()


def test_retry_on_failure_callback(sleeps):
    seen = []
    operation = Mock(side_effect=[ValueError("a"), ValueError("b"), 3])

    result = retry(
        operation,
        RetryPolicy(max_attempts=3, base_delay=0.01),
        lambda attempt, error: seen.append((attempt, str(error))),
    )

    assert result == 3
    assert seen == [(1, "a"), (2, "b")]
    assert sleeps == pytest.approx([0.02, 0.04])


def test_unregistered_driver_is_not_retried(sleeps):
    config = DatabaseConfig.from_mapping(
        {"connections": {"legacy": {"driver": "mysql", "host": "db"}}}
    )
    coordinator = TransactionCoordinator(ConnectionRegistry(config))
    work = Mock()

    with pytest.raises(ConfigurationError, match="driver 'mysql'"):
        coordinator.query_with_retry(work)

    work.assert_not_called()
    assert sleeps == []


def test_retry_passes_configuration_error_through(sleeps):
    operation = Mock(side_effect=ConfigurationError("bad settings"))

    with pytest.raises(ConfigurationError, match="bad settings"):
        retry(operation, RetryPolicy(max_attempts=3, base_delay=0.01))

    operation.assert_called_once_with()
    assert sleeps == []


def test_retry_leaves_other_transaction_alone(registry, driver, sleeps):
    writer = TransactionCoordinator(registry)
    reader = TransactionCoordinator(registry)
    work = Mock(side_effect=[RuntimeError("broken pipe"), "ok"])

    writer.begin()
    handle = writer.connection
    assert reader.query_with_retry(work) == "ok"

    assert writer.connection is handle
    assert handle.raw is driver
    assert driver not in registry.get_pool().idle

    writer.commit()
    assert driver.executed == ["BEGIN", "COMMIT"]
