"""Models for parameterized test resolution and execution.

This module defines the core data model:
- ParameterSpec: Closed union of the ways a method declares its rows
- RetryPolicy: How many times a failed invocation is retried
- ExecutionOutcome: Final result of one invocation
- Description: Reporting node tree used for display names
- TestMethodDescriptor: A discovered test method and its memoized rows
"""

import inspect
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Callable, Literal, Optional, Sequence, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from paramretry.config import DEFAULT_RETRY_COUNT, Settings
from paramretry.parameterized.errors import ConfigurationError, UnsupportedScheme

logger = structlog.get_logger()

Row = tuple[Any, ...]

# Attributes set on test functions by the decorators module
PARAMETERS_MARKER = "__paramretry_parameters__"
FILE_PARAMETERS_MARKER = "__paramretry_file_parameters__"
IGNORE_MARKER = "__paramretry_ignore__"

SUPPORTED_SCHEMES = ("file", "classpath")


class SpecKind(str, Enum):
    """Kinds of parameter specifications."""

    LITERAL = "literal"  # Rows written on the marker itself
    OVERRIDE = "override"  # Rows from the runtime override string
    SOURCE = "source"  # Rows from provider methods
    FILE = "file"  # Rows mapped from a file


class SourceSpec(BaseModel):
    """Rows produced by provider methods.

    Attributes:
        source: Class holding the providers (None means the test class itself)
        methods: Explicit provider names, in the order their rows are concatenated
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal[SpecKind.SOURCE] = SpecKind.SOURCE
    source: Optional[type] = Field(None, description="Class holding the providers")
    methods: tuple[str, ...] = Field(default_factory=tuple, description="Provider names")

    @field_validator("methods", mode="before")
    @classmethod
    def split_method_names(cls, v: Any) -> Any:
        """Accept a comma separated string as well as a sequence of names."""
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split(",")
        return tuple(name.strip() for name in v if name and name.strip())


class LiteralSpec(BaseModel):
    """Rows written directly on the marker.

    When the literal rows are empty the optional fallback source is consulted.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal[SpecKind.LITERAL] = SpecKind.LITERAL
    rows: tuple[Any, ...] = Field(default_factory=tuple, description="Literal rows")
    fallback: Optional[SourceSpec] = Field(None, description="Source used when rows are empty")


class OverrideSpec(BaseModel):
    """Rows from the runtime override string, one scalar row per ';' separated item."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[SpecKind.OVERRIDE] = SpecKind.OVERRIDE
    raw: str = Field(..., description="Raw override string")

    def split(self) -> list[str]:
        """Split the override into its row strings."""
        return self.raw.split(";")


def split_scheme(path: str) -> tuple[Optional[str], str]:
    """Split ``scheme:path`` into its parts. A path without ':' has no scheme."""
    if ":" not in path:
        return None, path
    scheme, _, rest = path.partition(":")
    return scheme, rest


class FileSpec(BaseModel):
    """Rows mapped from a file reference of the form ``[scheme:]path``.

    Attributes:
        path: File reference; scheme is ``file``, ``classpath`` or absent
        mapper: DataMapper subclass turning the opened reader into rows
        encoding: Encoding used to open the file
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal[SpecKind.FILE] = SpecKind.FILE
    path: str = Field(..., min_length=1, description="File reference")
    mapper: Optional[type] = Field(None, description="DataMapper subclass")
    encoding: str = Field("utf-8", description="File encoding")

    @field_validator("mapper")
    @classmethod
    def validate_mapper(cls, v: Optional[type]) -> Optional[type]:
        """Ensure the mapper class exposes a map() method."""
        if v is not None and not callable(getattr(v, "map", None)):
            raise ValueError(f"{v.__qualname__} is not a data mapper (no map() method)")
        return v

    @model_validator(mode="after")
    def validate_scheme(self) -> "FileSpec":
        """Reject unknown access schemes at construction time."""
        scheme, _ = split_scheme(self.path)
        if scheme is not None and scheme not in SUPPORTED_SCHEMES:
            raise UnsupportedScheme(self.path, scheme)
        return self

    @property
    def scheme(self) -> Optional[str]:
        return split_scheme(self.path)[0]

    @property
    def location(self) -> str:
        return split_scheme(self.path)[1]


ParameterSpec = Annotated[
    Union[LiteralSpec, OverrideSpec, SourceSpec, FileSpec],
    Field(discriminator="kind"),
]


class RetryPolicy(BaseModel):
    """Number of additional attempts made after a failed invocation."""

    model_config = ConfigDict(frozen=True)

    count: int = Field(DEFAULT_RETRY_COUNT, ge=0, description="Retries after the first failure")

    @property
    def max_attempts(self) -> int:
        return self.count + 1

    @classmethod
    def resolve(
        cls,
        explicit: Optional[Union[int, str]] = None,
        settings: Optional[Settings] = None,
    ) -> "RetryPolicy":
        """Resolve the retry count from an explicit override, then settings, then the default.

        Values that are not non-negative integers are logged and ignored.
        """
        candidates = [("explicit", explicit)]
        if settings is not None:
            candidates.append(("RETRY_COUNT", settings.retry_count))

        for origin, raw in candidates:
            if raw is None:
                continue
            try:
                count = int(str(raw).strip())
            except ValueError:
                logger.warning(
                    "Ignoring non-numeric retry count",
                    origin=origin,
                    value=raw,
                    default=DEFAULT_RETRY_COUNT,
                )
                return cls()
            if count < 0:
                logger.warning(
                    "Ignoring negative retry count",
                    origin=origin,
                    value=raw,
                    default=DEFAULT_RETRY_COUNT,
                )
                return cls()
            return cls(count=count)

        return cls()


class OutcomeStatus(str, Enum):
    """Final status of one invocation."""

    PASSED = "passed"
    FAILED_ASSUMPTION = "failed_assumption"
    FAILED = "failed"


class ExecutionOutcome(BaseModel):
    """Result of running one row through the retry loop.

    Attributes:
        status: Final status
        attempts: Number of times the test body was evaluated
        detail: Assumption failure detail, if any
        error: Last error caught, if the invocation failed
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: OutcomeStatus
    attempts: int = Field(1, ge=0)
    detail: Optional[str] = None
    error: Optional[BaseException] = None

    @classmethod
    def passed(cls, attempts: int) -> "ExecutionOutcome":
        return cls(status=OutcomeStatus.PASSED, attempts=attempts)

    @classmethod
    def failed_assumption(cls, error: BaseException, attempts: int = 1) -> "ExecutionOutcome":
        return cls(status=OutcomeStatus.FAILED_ASSUMPTION, attempts=attempts, detail=str(error), error=error)

    @classmethod
    def failed(cls, error: BaseException, attempts: int) -> "ExecutionOutcome":
        return cls(status=OutcomeStatus.FAILED, attempts=attempts, detail=str(error), error=error)


def stringify_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(stringify_value(v) for v in value) + "]"
    return str(value)


def stringify(row: Row, index: int) -> str:
    """Render a row and its position as ``[index] v1, v2, ...``.

    The index prefix keeps the rendering unique per row within a method.
    """
    return f"[{index}] " + ", ".join(stringify_value(v) for v in row)


@dataclass
class Description:
    """A reporting node: a method suite with one child per row, or a single test."""

    display_name: str
    test_class: Optional[type] = None
    children: list["Description"] = field(default_factory=list)

    @property
    def is_suite(self) -> bool:
        return bool(self.children)

    def add_child(self, child: "Description") -> None:
        self.children.append(child)

    def __str__(self) -> str:
        return self.display_name


def _positional_parameters(function: Callable) -> list[inspect.Parameter]:
    params = [
        p for p in inspect.signature(function).parameters.values()
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    # Drop the instance parameter
    return params[1:]


class TestMethodDescriptor:
    """A discovered test method, its parameter spec and its memoized rows.

    Two descriptors are equal when they share a name and a parameter type
    signature, so lookups of the same method through different classes match.
    """

    __test__ = False

    def __init__(self, function: Callable, test_class: type):
        self.function = function
        self.test_class = test_class
        self.name: str = function.__name__

        positional = _positional_parameters(function)
        self.parameter_types: tuple[Any, ...] = tuple(
            object if p.annotation is inspect.Parameter.empty else p.annotation
            for p in positional
        )
        self.arity = len(positional)
        self.variadic = any(
            p.kind == inspect.Parameter.VAR_POSITIONAL
            for p in inspect.signature(function).parameters.values()
        )

        parameters_marker = getattr(function, PARAMETERS_MARKER, None)
        file_marker = getattr(function, FILE_PARAMETERS_MARKER, None)
        if parameters_marker is not None and file_marker is not None:
            raise ConfigurationError(
                f"Both @parameters and @file_parameters exist on {self.name}. Remove one of them!"
            )
        self.spec: Optional[Union[LiteralSpec, SourceSpec, FileSpec]] = (
            parameters_marker if parameters_marker is not None else file_marker
        )

        ignore_marker = getattr(function, IGNORE_MARKER, None)
        self.explicitly_ignored = ignore_marker is not None
        self.ignore_reason: Optional[str] = ignore_marker or None

        self._rows: Optional[list[Row]] = None
        self._warned = False
        self._lock = threading.Lock()

    @classmethod
    def list_from(cls, functions: Sequence[Callable], test_class: type) -> list["TestMethodDescriptor"]:
        return [cls(function, test_class) for function in functions]

    @property
    def hierarchy(self) -> tuple[type, ...]:
        """The test class and its bases, excluding object."""
        return tuple(c for c in self.test_class.__mro__ if c is not object)

    @property
    def is_parameterised(self) -> bool:
        return self.spec is not None

    @property
    def resolved(self) -> bool:
        return self._rows is not None

    def memoized_rows(self, compute: Callable[[], list[Row]]) -> list[Row]:
        """Return the cached rows, computing them once under the descriptor's lock."""
        if self._rows is not None:
            return self._rows
        with self._lock:
            if self._rows is None:
                self._rows = list(compute())
        return self._rows

    def mark_warned(self) -> bool:
        """Record that the empty-rows warning was logged. True only on the first call."""
        with self._lock:
            first = not self._warned
            self._warned = True
        return first

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TestMethodDescriptor):
            return NotImplemented
        return self.name == other.name and self.parameter_types == other.parameter_types

    def __hash__(self) -> int:
        return hash((self.name, self.parameter_types))

    def __repr__(self) -> str:
        return f"TestMethodDescriptor({self.test_class.__qualname__}.{self.name}, arity={self.arity})"
