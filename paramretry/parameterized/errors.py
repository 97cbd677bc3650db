"""Exceptions raised while resolving and running parameterized tests.

Resolution errors are fatal for the method they belong to: the runner reports
them as that method's single failure instead of running any row.
"""

import unittest
from typing import Any


class ParameterizationError(Exception):
    """Base exception for parameter resolution and execution problems."""

    pass


class ConfigurationError(ParameterizationError):
    """Raised when a test method carries conflicting or invalid markers."""

    pass


class UnsupportedScheme(ConfigurationError):
    """Raised when a file reference uses an access scheme other than file/classpath."""

    def __init__(self, path: str, scheme: str):
        self.path = path
        self.scheme = scheme
        super().__init__(
            f"Unknown file access scheme '{scheme}' in '{path}'. "
            "Only 'file' and 'classpath' are supported!"
        )


class ProviderNotFound(ParameterizationError):
    """Raised when no zero-argument provider with the given name exists in the hierarchy."""

    def __init__(self, method_name: str, search_root: type):
        self.method_name = method_name
        self.search_root = search_root
        super().__init__(
            f"Could not find method: {method_name} in {search_root.__qualname__} "
            "or its base classes, so no params were used."
        )


class ProviderNotStatic(ParameterizationError):
    """Raised when a convention provider would need an instance to be called."""

    def __init__(self, method_name: str, declaring_class: type):
        self.method_name = method_name
        self.declaring_class = declaring_class
        super().__init__(
            f"Parameters source method {method_name} in {declaring_class.__qualname__} "
            "is not declared as static. Change it to a staticmethod or classmethod."
        )


class NoProvidersFound(ParameterizationError):
    """Raised when convention discovery on a source class yields no rows."""

    def __init__(self, source_class: type):
        self.source_class = source_class
        super().__init__(
            "No methods starting with provide or they return no result "
            f"in the parameters source class: {source_class.__qualname__}"
        )


class UnsupportedProviderReturnType(ParameterizationError):
    """Raised when a provider returns something that cannot be read as rows."""

    def __init__(self, method_name: str, declaring_class: type, value: Any = None):
        self.method_name = method_name
        self.declaring_class = declaring_class
        super().__init__(
            f"The return type of: {method_name} defined in class "
            f"{declaring_class.__qualname__} is {type(value).__name__}, "
            "not a sequence or iterable of rows. Fix it!"
        )


class ProviderInvocationError(ParameterizationError):
    """Raised when a provider cannot be called or fails while producing rows."""

    def __init__(self, method_name: str, declaring_class: type, cause: BaseException):
        self.method_name = method_name
        self.declaring_class = declaring_class
        self.cause = cause
        super().__init__(
            f"Could not invoke method: {method_name} defined in class "
            f"{declaring_class.__qualname__} so no params were used: {cause}"
        )


class ParameterFileError(ParameterizationError):
    """Raised when a parameter file cannot be opened or mapped into rows."""

    def __init__(self, path: str, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Could not successfully read parameters from file: {path} ({cause})")


class RowArityError(ParameterizationError):
    """Raised when a resolved row does not match the method's parameter count."""

    def __init__(self, method_name: str, index: int, row: tuple, arity: int):
        self.method_name = method_name
        self.index = index
        self.row = row
        self.arity = arity
        super().__init__(
            f"Row {index} for {method_name} has {len(row)} values but the method "
            f"takes {arity}: {row!r}"
        )


class IncompatibleHostRuntime(ParameterizationError):
    """Raised when the invocation chain holds no parameterized invocation."""

    def __init__(self, message: str = "Cannot find invoker for the parameterised method in the invocation chain."):
        super().__init__(message)


class AssumptionViolatedError(unittest.SkipTest):
    """Raised by a test body whose preconditions do not hold.

    Never retried and never counted as a failure.
    """

    pass


def assume(condition: bool, message: str = "assumption failed") -> None:
    """Abort the current invocation as an assumption failure unless ``condition`` holds."""
    if not condition:
        raise AssumptionViolatedError(message)
