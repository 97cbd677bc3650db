"""Tests for the parameterized runner."""

import structlog

from paramretry.config import Settings
from paramretry.parameterized.decorators import file_parameters, ignore, parameters
from paramretry.parameterized.errors import IncompatibleHostRuntime, assume
from paramretry.parameterized.models import OutcomeStatus
from paramretry.parameterized.notification import EventType, RecordingNotifier
from paramretry.parameterized.providers import ProviderRegistry
from paramretry.parameterized.runner import ParameterizedRunner, RunStatus, is_test_function


class CalculatorCase:
    calls: list = []

    def setUp(self):
        self.ready = True

    @parameters((1, 1, 2), (2, 3, 5))
    def test_add(self, a, b, expected):
        assert self.ready
        CalculatorCase.calls.append((a, b))
        assert a + b == expected

    @parameters()
    def test_double(self, value, expected):
        assert value * 2 == expected

    def test_plain(self):
        CalculatorCase.calls.append("plain")

    def helper(self):
        raise AssertionError("not a test")

    @staticmethod
    def parametersForTest_double():
        return [(1, 2), (4, 8)]


class FailingCase:
    @parameters(1, 2)
    def test_only_two_passes(self, value):
        assert value == 2


class FlakyCase:
    attempts: dict = {}

    @parameters("a", "b")
    def test_flaky(self, key):
        FlakyCase.attempts[key] = FlakyCase.attempts.get(key, 0) + 1
        assert FlakyCase.attempts[key] >= 3


class EmptyCase:
    @parameters(method="nothing")
    def test_nothing(self, value):
        raise AssertionError("never run")

    @staticmethod
    def nothing():
        return []


class MixedCase:
    @ignore("slow")
    @parameters(1)
    def test_ignored(self, value):
        raise AssertionError("never run")

    @parameters(method="missing")
    def test_missing_provider(self, value):
        raise AssertionError("never run")

    @parameters(1)
    @file_parameters("rows.txt")
    def test_conflict(self, value):
        raise AssertionError("never run")

    @parameters(1)
    def test_assumption(self, value):
        assume(False, "needs network")

    @parameters(1)
    def check_marked(self, value):
        pass


class BaseCase:
    @parameters(1)
    def test_inherited(self, value):
        pass

    @parameters(1)
    def test_overridden(self, value):
        raise AssertionError("base version")


class DerivedCase(BaseCase):
    @parameters(2)
    def test_overridden(self, value):
        assert value == 2


class RegistryCase:
    @parameters()
    def test_registered(self, value):
        assert value in (7, 8)


class ForeignRuntimeCase:
    @parameters(1, 2)
    def test_foreign_chain(self, value):
        raise IncompatibleHostRuntime()

    @parameters(1)
    def test_after(self, value):
        pass


class TestDiscovery:
    """Tests for test method discovery."""

    def test_is_test_function(self):
        assert is_test_function("test_add", CalculatorCase.test_add)
        assert not is_test_function("helper", CalculatorCase.helper)
        assert not is_test_function("parametersForTest_double", CalculatorCase.__dict__["parametersForTest_double"])

    def test_marked_functions_discovered(self):
        names = [f.__name__ for f in ParameterizedRunner(MixedCase).discover()]

        assert "check_marked" in names

    def test_overrides_discovered_once(self):
        names = [f.__name__ for f in ParameterizedRunner(DerivedCase).discover()]

        assert names == ["test_overridden", "test_inherited"]


class TestRun:
    """Tests for running a class."""

    def test_all_rows_run(self, settings, notifier):
        CalculatorCase.calls.clear()

        summary = ParameterizedRunner(CalculatorCase, settings=settings, notifier=notifier).run()

        assert summary.status == RunStatus.PASSED
        assert summary.passed == 5
        assert summary.total_invocations == 5
        assert CalculatorCase.calls == [(1, 1), (2, 3), "plain"]
        assert [e.node for e in notifier.of_type(EventType.BEGIN)] == [
            "[0] 1, 1, 2 (test_add)",
            "[1] 2, 3, 5 (test_add)",
            "[0] 1, 2 (test_double)",
            "[1] 4, 8 (test_double)",
            "test_plain",
        ]

    def test_failure_after_retries(self, settings, notifier):
        summary = ParameterizedRunner(FailingCase, settings=settings, notifier=notifier).run()

        failures = notifier.of_type(EventType.FAILURE)
        assert summary.status == RunStatus.FAILED
        assert summary.failed == 1
        assert summary.passed == 1
        assert summary.retried == 1
        assert [f.node for f in failures] == ["[0] 1 (test_only_two_passes)"]

    def test_flaky_rows_pass_on_last_retry(self, settings, notifier):
        FlakyCase.attempts.clear()

        summary = ParameterizedRunner(FlakyCase, settings=settings, notifier=notifier).run()

        assert summary.passed == 2
        assert summary.retried == 2
        assert FlakyCase.attempts == {"a": 3, "b": 3}
        assert not notifier.of_type(EventType.FAILURE)

    def test_retry_count_override(self, settings, notifier):
        FlakyCase.attempts.clear()

        summary = ParameterizedRunner(FlakyCase, settings=settings, notifier=notifier, retry_count=1).run()

        assert summary.failed == 2
        assert FlakyCase.attempts == {"a": 2, "b": 2}

    def test_override_rows(self, notifier):
        settings = Settings(parameters="1;2")

        summary = ParameterizedRunner(FailingCase, settings=settings, notifier=notifier).run()

        # Override rows are strings, so neither equals the integer 2
        assert summary.failed == 2

    def test_empty_rows_auto_ignored(self, settings, notifier):
        """Test a method without rows is ignored with one warning and never started."""
        with structlog.testing.capture_logs() as logs:
            summary = ParameterizedRunner(EmptyCase, settings=settings, notifier=notifier).run()

        warnings = [log for log in logs if log["log_level"] == "warning"]
        assert summary.ignored == 1
        assert summary.status == RunStatus.PASSED
        assert len(warnings) == 1
        assert not notifier.of_type(EventType.BEGIN)
        assert [e.node for e in notifier.of_type(EventType.IGNORED)] == ["test_nothing"]

    def test_method_errors_and_assumptions(self, settings, notifier):
        summary = ParameterizedRunner(MixedCase, settings=settings, notifier=notifier).run()

        assert summary.ignored == 1
        assert summary.errors == 2
        assert set(summary.method_errors) == {"test_missing_provider", "test_conflict"}
        assert summary.assumption_failed == 1
        assert summary.passed == 1
        assert summary.status == RunStatus.FAILED
        assert len(notifier.of_type(EventType.FAILURE)) == 2

    def test_incompatible_runtime_reported_per_method(self, settings, notifier):
        """Test a method whose chain cannot be matched fails alone and the run goes on."""
        summary = ParameterizedRunner(ForeignRuntimeCase, settings=settings, notifier=notifier).run()

        assert summary.errors == 1
        assert set(summary.method_errors) == {"test_foreign_chain"}
        assert summary.passed == 1
        assert summary.status == RunStatus.FAILED
        assert summary.completed_at is not None

    def test_inherited_methods(self, settings, notifier):
        summary = ParameterizedRunner(DerivedCase, settings=settings, notifier=notifier).run()

        assert summary.passed == 2
        assert summary.was_successful

    def test_custom_lookup(self, settings, notifier):
        registry = ProviderRegistry()
        registry.register(RegistryCase, "parametersForTest_registered", lambda: [7, 8])

        summary = ParameterizedRunner(RegistryCase, settings=settings, notifier=notifier, lookup=registry).run()

        assert summary.passed == 2

    def test_summary_to_dict(self, settings):
        summary = ParameterizedRunner(FailingCase, settings=settings, notifier=RecordingNotifier()).run()

        data = summary.to_dict()

        assert data["status"] == "failed"
        assert data["outcomes"][0]["status"] == OutcomeStatus.FAILED.value
        assert data["outcomes"][0]["attempts"] == 3
        assert data["outcomes"][1]["node"] == "[1] 2 (test_only_two_passes)"


class TestDescribe:
    """Tests for the reporting tree."""

    def test_tree(self, settings):
        root = ParameterizedRunner(MixedCase, settings=settings).describe()

        names = [child.display_name for child in root.children]
        assert root.display_name == "MixedCase"
        assert names == ["test_ignored", "test_missing_provider", "test_conflict", "test_assumption", "check_marked"]
        assert root.children[3].children[0].display_name == "[0] 1 (test_assumption)"

    def test_flat_tree(self):
        root = ParameterizedRunner(CalculatorCase, settings=Settings(params_flat=True)).describe()

        assert not any(child.is_suite for child in root.children)
