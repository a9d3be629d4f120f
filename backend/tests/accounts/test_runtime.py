"""
Tests for the runtime container.
"""

from unittest.mock import patch

from apps.accounts.runtime import AuthRuntime, get_runtime, install_runtime, reset_runtime
from apps.otp.constants import DeliveryChannel, OTPPurpose


class TestRuntimeLifecycle:
    def teardown_method(self):
        reset_runtime()

    def test_get_runtime_builds_once(self):
        first = get_runtime()
        assert get_runtime() is first

    def test_reset_discards_state(self):
        first = get_runtime()
        reset_runtime()
        assert get_runtime() is not first

    def test_install_replaces_runtime(self, clock):
        runtime = AuthRuntime(clock=clock)
        install_runtime(runtime)
        assert get_runtime() is runtime

    def test_reset_stops_background_tasks(self, clock):
        runtime = AuthRuntime(clock=clock)
        install_runtime(runtime)

        with patch.object(AuthRuntime, "stop_background_tasks") as mock_stop:
            reset_runtime()

        mock_stop.assert_called_once()

    def test_background_tasks_start_and_stop(self, clock):
        runtime = AuthRuntime(clock=clock)

        runtime.start_background_tasks()
        try:
            assert all(task.is_running for task in runtime.tasks)
        finally:
            runtime.stop_background_tasks()

        assert not any(task.is_running for task in runtime.tasks)


class TestMaintenance:
    def test_run_maintenance_purges_otp_records(self, runtime, clock):
        runtime.ledger.issue("ada@example.com", DeliveryChannel.EMAIL, OTPPurpose.LOGIN)
        clock.advance(days=2)

        results = runtime.run_maintenance()

        assert results == {"webauthn-session-sweep": 0, "otp-retention-purge": 1}
        assert len(runtime.otp_store) == 0
