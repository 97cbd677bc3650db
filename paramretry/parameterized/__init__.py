"""Parameterized test methods with retry.

This module provides functionality for:
- Declaring where a test method's rows come from (literal rows, provider
  methods, parameter files, or the runtime override)
- Resolving and normalizing those rows once per method
- Running each row's invocation with bounded retry on failure
- Reporting every invocation against its own reporting node

Example usage:
    from paramretry.parameterized import ParameterizedRunner, RecordingNotifier, parameters

    class CalculatorTest:

        @parameters((1, 1, 2), (2, 3, 5))
        def test_add(self, a, b, expected):
            assert a + b == expected

        @parameters()
        def test_double(self, value, expected):
            assert value * 2 == expected

        @staticmethod
        def parametersForTest_double():
            return [(1, 2), (4, 8)]

    notifier = RecordingNotifier()
    summary = ParameterizedRunner(CalculatorTest, notifier=notifier).run()
"""

from paramretry.parameterized.data_sources import (
    CsvMapper,
    CsvWithHeaderMapper,
    DataMapper,
    FileParameterSource,
    IdentityMapper,
    JsonMapper,
)
from paramretry.parameterized.decorators import file_parameters, ignore, parameters
from paramretry.parameterized.engine import ParameterSpecResolver
from paramretry.parameterized.errors import (
    AssumptionViolatedError,
    ConfigurationError,
    IncompatibleHostRuntime,
    NoProvidersFound,
    ParameterFileError,
    ParameterizationError,
    ProviderInvocationError,
    ProviderNotFound,
    ProviderNotStatic,
    RowArityError,
    UnsupportedProviderReturnType,
    UnsupportedScheme,
    assume,
)
from paramretry.parameterized.executor import RetryingExecutionCoordinator
from paramretry.parameterized.identity import (
    Invocation,
    InvocationIdentityMatcher,
    ParameterizedInvocation,
    SetUpTearDownInvocation,
)
from paramretry.parameterized.models import (
    Description,
    ExecutionOutcome,
    FileSpec,
    LiteralSpec,
    OutcomeStatus,
    OverrideSpec,
    ParameterSpec,
    RetryPolicy,
    Row,
    SourceSpec,
    TestMethodDescriptor,
    stringify,
)
from paramretry.parameterized.normalizer import RowShapeNormalizer, normalize
from paramretry.parameterized.notification import (
    CompositeNotifier,
    EachTestNotifier,
    EventType,
    LoggingNotifier,
    NotificationEvent,
    RecordingNotifier,
    RunNotifier,
)
from paramretry.parameterized.providers import (
    HierarchyProviderLookup,
    ProviderInvoker,
    ProviderLookup,
    ProviderRegistry,
    SearchOrder,
)
from paramretry.parameterized.runner import ParameterizedRunner, RunStatus, RunSummary

__all__ = [
    # Markers
    "parameters",
    "file_parameters",
    "ignore",
    # Models
    "Row",
    "ParameterSpec",
    "LiteralSpec",
    "OverrideSpec",
    "SourceSpec",
    "FileSpec",
    "RetryPolicy",
    "ExecutionOutcome",
    "OutcomeStatus",
    "Description",
    "TestMethodDescriptor",
    "stringify",
    # Resolution
    "RowShapeNormalizer",
    "normalize",
    "ProviderInvoker",
    "ProviderLookup",
    "HierarchyProviderLookup",
    "ProviderRegistry",
    "SearchOrder",
    "ParameterSpecResolver",
    # Files
    "DataMapper",
    "IdentityMapper",
    "CsvMapper",
    "CsvWithHeaderMapper",
    "JsonMapper",
    "FileParameterSource",
    # Execution
    "Invocation",
    "ParameterizedInvocation",
    "SetUpTearDownInvocation",
    "InvocationIdentityMatcher",
    "RetryingExecutionCoordinator",
    "ParameterizedRunner",
    "RunSummary",
    "RunStatus",
    # Reporting
    "RunNotifier",
    "EachTestNotifier",
    "RecordingNotifier",
    "LoggingNotifier",
    "CompositeNotifier",
    "NotificationEvent",
    "EventType",
    # Errors
    "ParameterizationError",
    "ConfigurationError",
    "UnsupportedScheme",
    "ProviderNotFound",
    "ProviderNotStatic",
    "NoProvidersFound",
    "UnsupportedProviderReturnType",
    "ProviderInvocationError",
    "ParameterFileError",
    "RowArityError",
    "IncompatibleHostRuntime",
    "AssumptionViolatedError",
    "assume",
]
