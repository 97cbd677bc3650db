"""Runs the test methods of one class, row by row.

The ParameterizedRunner is a small host around the resolver and the retrying
coordinator:
- Discovers test functions (``test*`` names, or any function with a marker)
- Resolves each method's rows once, before running any of them
- Builds a fresh instance and an invocation chain per row
- Reports method level problems (bad markers, failing providers) as a
  single failure of that method
- Aggregates outcomes into a RunSummary
"""

import inspect
import time
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Callable, Optional, Union

import structlog

from paramretry.config import Settings, get_settings
from paramretry.parameterized.engine import ParameterSpecResolver
from paramretry.parameterized.errors import (
    ConfigurationError,
    IncompatibleHostRuntime,
    ParameterizationError,
)
from paramretry.parameterized.executor import RetryingExecutionCoordinator
from paramretry.parameterized.identity import ParameterizedInvocation, SetUpTearDownInvocation
from paramretry.parameterized.models import (
    FILE_PARAMETERS_MARKER,
    PARAMETERS_MARKER,
    Description,
    ExecutionOutcome,
    OutcomeStatus,
    RetryPolicy,
    TestMethodDescriptor,
)
from paramretry.parameterized.notification import LoggingNotifier, RunNotifier
from paramretry.parameterized.providers import ProviderInvoker, ProviderLookup

logger = structlog.get_logger()


class RunStatus(str, Enum):
    """Overall status of a class run."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"


class RunSummary:
    """Aggregated result of running one test class.

    Attributes:
        test_class: Name of the class that was run
        total_invocations: Number of rows executed
        passed: Invocations that passed, possibly after retries
        failed: Invocations that failed on every attempt
        assumption_failed: Invocations stopped by an assumption
        ignored: Methods ignored explicitly or for lack of rows
        errors: Methods that could not be set up (markers, providers, files)
        retried: Invocations that needed more than one attempt
    """

    def __init__(self, test_class: str):
        self.test_class = test_class
        self.total_invocations: int = 0
        self.passed: int = 0
        self.failed: int = 0
        self.assumption_failed: int = 0
        self.ignored: int = 0
        self.errors: int = 0
        self.retried: int = 0
        self.status = RunStatus.PENDING
        self.started_at: datetime | None = None
        self.completed_at: datetime | None = None
        self.duration_ms: int = 0
        self.outcomes: list[tuple[str, ExecutionOutcome]] = []
        self.method_errors: dict[str, str] = {}

    def record(self, node: Description, outcome: ExecutionOutcome) -> None:
        self.total_invocations += 1
        self.outcomes.append((node.display_name, outcome))
        if outcome.attempts > 1:
            self.retried += 1
        if outcome.status == OutcomeStatus.PASSED:
            self.passed += 1
        elif outcome.status == OutcomeStatus.FAILED:
            self.failed += 1
        elif outcome.status == OutcomeStatus.FAILED_ASSUMPTION:
            self.assumption_failed += 1

    def record_error(self, method_name: str, error: BaseException) -> None:
        self.errors += 1
        self.method_errors[method_name] = str(error)

    @property
    def was_successful(self) -> bool:
        return self.failed == 0 and self.errors == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "test_class": self.test_class,
            "status": self.status.value,
            "total_invocations": self.total_invocations,
            "passed": self.passed,
            "failed": self.failed,
            "assumption_failed": self.assumption_failed,
            "ignored": self.ignored,
            "errors": self.errors,
            "retried": self.retried,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "outcomes": [
                {
                    "node": node,
                    "status": outcome.status.value,
                    "attempts": outcome.attempts,
                    "detail": outcome.detail,
                }
                for node, outcome in self.outcomes
            ],
            "method_errors": self.method_errors,
        }


def is_test_function(name: str, value: Any) -> bool:
    if not inspect.isfunction(value):
        return False
    if hasattr(value, PARAMETERS_MARKER) or hasattr(value, FILE_PARAMETERS_MARKER):
        return True
    return name.startswith("test")


class ParameterizedRunner:
    """Runs every test method of a class through the retrying coordinator.

    Example:
        runner = ParameterizedRunner(CalculatorTest, notifier=RecordingNotifier())
        summary = runner.run()
        print(f"Passed: {summary.passed}/{summary.total_invocations}")
    """

    def __init__(
        self,
        test_class: type,
        settings: Optional[Settings] = None,
        notifier: Optional[RunNotifier] = None,
        lookup: Optional[ProviderLookup] = None,
        retry_count: Optional[Union[int, str]] = None,
    ):
        """Initialize the runner.

        Args:
            test_class: Class whose test methods are run
            settings: Run settings (default: loaded from the environment)
            notifier: Reporting sink (default: LoggingNotifier)
            lookup: Provider lookup policy (default: hierarchy, subclass first)
            retry_count: Explicit retry override for every method
        """
        self.test_class = test_class
        self.settings = settings if settings is not None else get_settings()
        self.notifier = notifier or LoggingNotifier()
        self.resolver = ParameterSpecResolver(
            settings=self.settings,
            invoker=ProviderInvoker(lookup=lookup),
        )
        self.retry_policy = RetryPolicy.resolve(explicit=retry_count, settings=self.settings)
        self._descriptors: Optional[list[Union[TestMethodDescriptor, tuple[str, ConfigurationError]]]] = None

    def discover(self) -> list[Callable]:
        """Test functions of the class, subclass declarations first, overrides once."""
        seen: set[str] = set()
        functions = []
        for klass in self.test_class.__mro__:
            if klass is object:
                continue
            for name, value in vars(klass).items():
                if name in seen:
                    continue
                seen.add(name)
                if is_test_function(name, value):
                    functions.append(value)
        return functions

    def descriptors(self) -> list[Union[TestMethodDescriptor, tuple[str, ConfigurationError]]]:
        """Descriptors of the discovered methods, or the construction error per method."""
        if self._descriptors is None:
            built: list[Union[TestMethodDescriptor, tuple[str, ConfigurationError]]] = []
            for function in self.discover():
                try:
                    built.append(TestMethodDescriptor(function, self.test_class))
                except ConfigurationError as e:
                    built.append((function.__name__, e))
            self._descriptors = built
        return self._descriptors

    def describe(self) -> Description:
        """Reporting tree of the class: one node per method, one child per row."""
        root = Description(display_name=self.test_class.__qualname__, test_class=self.test_class)
        for entry in self.descriptors():
            if isinstance(entry, TestMethodDescriptor):
                try:
                    root.add_child(self.resolver.describe(entry))
                except ParameterizationError:
                    root.add_child(Description(display_name=entry.name, test_class=self.test_class))
            else:
                root.add_child(Description(display_name=entry[0], test_class=self.test_class))
        return root

    def run(self) -> RunSummary:
        """Run every discovered method and return the aggregated summary."""
        summary = RunSummary(test_class=self.test_class.__qualname__)
        summary.started_at = datetime.now(UTC)
        summary.status = RunStatus.RUNNING
        start_time = time.time()

        logger.info(
            "Starting parameterized run",
            test_class=self.test_class.__qualname__,
            retry_count=self.retry_policy.count,
        )

        for entry in self.descriptors():
            if isinstance(entry, TestMethodDescriptor):
                self._run_method(entry, summary)
            else:
                name, error = entry
                self._report_method_error(Description(display_name=name, test_class=self.test_class), error, summary)

        summary.completed_at = datetime.now(UTC)
        summary.duration_ms = int((time.time() - start_time) * 1000)
        summary.status = RunStatus.PASSED if summary.was_successful else RunStatus.FAILED

        logger.info(
            "Parameterized run completed",
            test_class=self.test_class.__qualname__,
            status=summary.status.value,
            passed=summary.passed,
            failed=summary.failed,
            ignored=summary.ignored,
            errors=summary.errors,
            duration_ms=summary.duration_ms,
        )
        return summary

    def _run_method(self, descriptor: TestMethodDescriptor, summary: RunSummary) -> None:
        method_node = Description(display_name=descriptor.name, test_class=self.test_class)

        if descriptor.explicitly_ignored:
            self.notifier.report_ignored(method_node)
            summary.ignored += 1
            return

        try:
            rows = self.resolver.resolve(descriptor) if descriptor.is_parameterised else [()]
        except ParameterizationError as e:
            self._report_method_error(method_node, e, summary)
            return

        if self.resolver.warn_if_no_params(descriptor):
            self.notifier.report_ignored(method_node)
            summary.ignored += 1
            return

        coordinator = RetryingExecutionCoordinator(
            descriptor,
            self.resolver,
            retry_policy=self.retry_policy,
        )

        for position in range(len(rows)):
            if descriptor.is_parameterised:
                index, row = coordinator.current_params()
            else:
                index, row = position, ()

            try:
                instance = self.test_class()
            except Exception as e:
                self._report_method_error(method_node, e, summary)
                return

            invocation = SetUpTearDownInvocation(
                ParameterizedInvocation(instance, descriptor.function, row, index),
                instance,
            )
            try:
                outcome = coordinator.run_test_method(invocation, self.notifier)
            except IncompatibleHostRuntime as e:
                self._report_method_error(method_node, e, summary)
                return
            summary.record(self._node_for(coordinator, index), outcome)

    def _node_for(self, coordinator: RetryingExecutionCoordinator, index: int) -> Description:
        description = coordinator.method_description
        if description.children and index < len(description.children):
            return description.children[index]
        return description

    def _report_method_error(self, node: Description, error: BaseException, summary: RunSummary) -> None:
        logger.error(
            "Test method could not be run",
            method=node.display_name,
            error=str(error),
            error_type=type(error).__name__,
        )
        self.notifier.begin(node)
        try:
            self.notifier.report_failure(node, error)
        finally:
            self.notifier.end(node)
        summary.record_error(node.display_name, error)
