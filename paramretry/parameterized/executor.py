"""Retrying execution of parameterized invocations.

This module provides the RetryingExecutionCoordinator class which handles:
- Pairing each invocation with its reporting node
- Reporting begin/end events for every invocation
- Classifying failures as assumption failures or real failures
- Retrying real failures up to the configured retry count

Each invocation moves through::

    Started -> Passed
    Started -> FailedAssumption
    Started -> Retrying(1) -> ... -> Retrying(n) -> Passed | Failed

and always finishes with an end event.
"""

import unittest
from typing import Optional, Union

import structlog

from paramretry.parameterized.engine import ParameterSpecResolver
from paramretry.parameterized.errors import IncompatibleHostRuntime
from paramretry.parameterized.identity import Invocation, InvocationIdentityMatcher
from paramretry.parameterized.models import (
    Description,
    ExecutionOutcome,
    RetryPolicy,
    Row,
    TestMethodDescriptor,
)
from paramretry.parameterized.notification import EachTestNotifier, RunNotifier
from paramretry.utils.logging import LogContext

logger = structlog.get_logger()

# AssumptionViolatedError derives from SkipTest
ASSUMPTION_ERRORS: tuple[type[BaseException], ...] = (unittest.SkipTest,)


class RetryingExecutionCoordinator:
    """Runs the invocations of one test method with bounded retry.

    The retry count is resolved once, at construction, from the explicit
    ``retry_count`` argument, then the ``RETRY_COUNT`` setting, then the
    default of 2. A failing invocation is evaluated at most
    ``retry_count + 1`` times and only the last error is reported.

    Example:
        coordinator = RetryingExecutionCoordinator(descriptor, resolver)

        for _ in resolver.resolve(descriptor):
            index, row = coordinator.current_params()
            invocation = ParameterizedInvocation(instance, descriptor.function, row, index)
            coordinator.run_test_method(invocation, notifier)
    """

    def __init__(
        self,
        descriptor: TestMethodDescriptor,
        resolver: ParameterSpecResolver,
        retry_count: Optional[Union[int, str]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        matcher: Optional[InvocationIdentityMatcher] = None,
    ):
        """Initialize the coordinator.

        Args:
            descriptor: Test method whose rows are executed
            resolver: Resolver that produced (or will produce) the rows
            retry_count: Explicit retry override, taking precedence over settings
            retry_policy: Ready-made policy, used instead of resolving one
            matcher: Identity matcher locating the reporting node of a row
        """
        self.method = descriptor
        self.resolver = resolver
        self.retry_policy = retry_policy or RetryPolicy.resolve(
            explicit=retry_count,
            settings=resolver.settings,
        )
        self.matcher = matcher or InvocationIdentityMatcher()
        self.failed_attempts = 0
        self._count = 0
        self._description: Optional[Description] = None

    @property
    def retry_count(self) -> int:
        return self.retry_policy.count

    @property
    def method_description(self) -> Description:
        """Reporting node of the method, built on first use and reused for every row."""
        if self._description is None:
            self._description = self.resolver.describe(self.method)
        return self._description

    def next_count(self) -> int:
        count = self._count
        self._count += 1
        return count

    def count(self) -> int:
        return self._count

    def current_params(self) -> tuple[int, Row]:
        """Advance the row cursor and return the index and row it points at."""
        index = self.next_count()
        return index, self.resolver.resolve(self.method)[index]

    def run_test_method(self, invocation: Invocation, notifier: RunNotifier) -> ExecutionOutcome:
        """Run one invocation against the reporting node of its row.

        Raises:
            IncompatibleHostRuntime: If the chain holds no parameterized invocation
        """
        node = self.matcher.find_child_for_params(
            invocation,
            self.method_description,
            flat=self.resolver.flat,
        )
        return self._run_invocation(notifier, invocation, node)

    def _run_invocation(
        self,
        notifier: RunNotifier,
        invocation: Invocation,
        node: Description,
    ) -> ExecutionOutcome:
        each_notifier = EachTestNotifier(notifier, node)
        each_notifier.fire_test_started()
        try:
            with LogContext(method=self.method.name, node=node.display_name):
                try:
                    invocation.evaluate()
                    return ExecutionOutcome.passed(attempts=1)
                except IncompatibleHostRuntime:
                    raise
                except ASSUMPTION_ERRORS as e:
                    each_notifier.add_failed_assumption(e)
                    return ExecutionOutcome.failed_assumption(e)
                except Exception as e:
                    return self._retry(each_notifier, invocation, e)
        finally:
            each_notifier.fire_test_finished()

    def _retry(
        self,
        each_notifier: EachTestNotifier,
        invocation: Invocation,
        current_error: Exception,
    ) -> ExecutionOutcome:
        caught_error: Exception = current_error
        attempts = 1
        self.failed_attempts = 0

        while self.retry_count > self.failed_attempts:
            logger.info(
                "Retrying failed invocation",
                node=each_notifier.node.display_name,
                retry=self.failed_attempts + 1,
                max_retries=self.retry_count,
                error=str(caught_error),
            )
            attempts += 1
            try:
                invocation.evaluate()
                logger.info("Invocation passed on retry", node=each_notifier.node.display_name, attempts=attempts)
                return ExecutionOutcome.passed(attempts=attempts)
            except IncompatibleHostRuntime:
                raise
            except ASSUMPTION_ERRORS as e:
                each_notifier.add_failed_assumption(e)
                return ExecutionOutcome.failed_assumption(e, attempts=attempts)
            except Exception as e:
                self.failed_attempts += 1
                caught_error = e

        each_notifier.add_failure(caught_error)
        return ExecutionOutcome.failed(caught_error, attempts=attempts)
