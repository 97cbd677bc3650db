"""Provider lookup and invocation.

A provider is a zero-argument method returning rows. Providers are found
either by explicit name, searched through a class hierarchy, or by the
``provide`` naming convention across every class of a source hierarchy.

Lookup is pluggable through the ProviderLookup protocol:
- HierarchyProviderLookup: Searches class dictionaries along the MRO
- ProviderRegistry: Explicit (name, class) registrations with a hierarchy fallback
"""

import inspect
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import structlog

from paramretry.parameterized.errors import (
    NoProvidersFound,
    ParameterizationError,
    ProviderInvocationError,
    ProviderNotFound,
    ProviderNotStatic,
    UnsupportedProviderReturnType,
)
from paramretry.parameterized.models import Row
from paramretry.parameterized.normalizer import RowShapeNormalizer, is_row_like

logger = structlog.get_logger()

PROVIDER_PREFIX = "provide"


class SearchOrder(str, Enum):
    """Order in which a class hierarchy is searched for providers."""

    SUBCLASS_FIRST = "subclass_first"  # Most derived class first, like attribute lookup
    BASE_FIRST = "base_first"  # Root-most base class first


def _callable_parts(raw: Any) -> Optional[tuple[Callable, int]]:
    """Return the underlying function and the number of leading bound parameters."""
    if isinstance(raw, staticmethod):
        return raw.__func__, 0
    if isinstance(raw, classmethod):
        return raw.__func__, 1
    if inspect.isfunction(raw):
        return raw, 1
    return None


def takes_no_arguments(raw: Any) -> bool:
    """Whether a class dictionary entry can be called without supplying arguments."""
    parts = _callable_parts(raw)
    if parts is None:
        return False
    function, bound = parts
    try:
        parameters = list(inspect.signature(function).parameters.values())
    except (TypeError, ValueError):
        return False
    required = [
        p for p in parameters[bound:]
        if p.default is inspect.Parameter.empty
        and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]
    return not required


@dataclass(frozen=True)
class ProviderRef:
    """A provider found during lookup.

    Attributes:
        name: Provider name
        declaring_class: Class whose dictionary holds the provider
        raw: The class dictionary entry (staticmethod, classmethod or function)
    """

    name: str
    declaring_class: type
    raw: Any

    @property
    def is_static(self) -> bool:
        """Static and class methods can be called without an instance."""
        return isinstance(self.raw, (staticmethod, classmethod))

    def call(self, owner: type) -> Any:
        """Call the provider, binding class methods to ``owner``.

        Plain functions get a fresh instance of their declaring class.
        """
        if isinstance(self.raw, staticmethod):
            return self.raw.__func__()
        if isinstance(self.raw, classmethod):
            return self.raw.__func__(owner)

        try:
            instance = self.declaring_class()
        except Exception as e:
            raise ProviderInvocationError(self.name, self.declaring_class, e) from e
        return self.raw(instance)


class ProviderLookup(Protocol):
    """Finds providers by (name, class) and by naming convention."""

    def find(self, name: str, search_root: type) -> Optional[ProviderRef]:
        ...

    def convention_providers(self, source_class: type, prefix: str = PROVIDER_PREFIX) -> list[ProviderRef]:
        ...


class HierarchyProviderLookup:
    """Looks providers up in the class dictionaries of a hierarchy.

    Only a class's own dictionary is inspected, so the class that declares a
    provider is always known. ``object`` is never searched.
    """

    def __init__(self, search_order: SearchOrder = SearchOrder.SUBCLASS_FIRST):
        self.search_order = search_order

    def hierarchy(self, cls: type) -> list[type]:
        classes = [c for c in cls.__mro__ if c is not object]
        if self.search_order == SearchOrder.BASE_FIRST:
            classes.reverse()
        return classes

    def find(self, name: str, search_root: type) -> Optional[ProviderRef]:
        for klass in self.hierarchy(search_root):
            raw = vars(klass).get(name)
            if raw is not None and takes_no_arguments(raw):
                return ProviderRef(name=name, declaring_class=klass, raw=raw)
        return None

    def convention_providers(self, source_class: type, prefix: str = PROVIDER_PREFIX) -> list[ProviderRef]:
        found = []
        for klass in self.hierarchy(source_class):
            for name, raw in vars(klass).items():
                if name.startswith(prefix) and _callable_parts(raw) is not None:
                    found.append(ProviderRef(name=name, declaring_class=klass, raw=raw))
        return found


class ProviderRegistry:
    """Providers registered explicitly against a (name, class) key.

    Registered providers are consulted first, walking the hierarchy of the
    search root; anything not registered is delegated to the fallback lookup.

    Example:
        registry = ProviderRegistry()

        @registry.provider(CalculatorTest)
        def provide_sums():
            return [(1, 1, 2), (2, 3, 5)]
    """

    def __init__(self, fallback: Optional[ProviderLookup] = None):
        self.fallback = fallback if fallback is not None else HierarchyProviderLookup()
        self._providers: dict[tuple[str, type], Callable[[], Any]] = {}

    def register(self, owner: type, name: str, provider: Callable[[], Any]) -> None:
        self._providers[(name, owner)] = provider

    def provider(self, owner: type, name: Optional[str] = None) -> Callable:
        """Decorator registering a zero-argument function as a provider of ``owner``."""

        def decorator(func: Callable[[], Any]) -> Callable[[], Any]:
            self.register(owner, name or func.__name__, func)
            return func

        return decorator

    def _hierarchy(self, cls: type) -> list[type]:
        if isinstance(self.fallback, HierarchyProviderLookup):
            return self.fallback.hierarchy(cls)
        return [c for c in cls.__mro__ if c is not object]

    def find(self, name: str, search_root: type) -> Optional[ProviderRef]:
        for klass in self._hierarchy(search_root):
            provider = self._providers.get((name, klass))
            if provider is not None:
                return ProviderRef(name=name, declaring_class=klass, raw=staticmethod(provider))
        return self.fallback.find(name, search_root)

    def convention_providers(self, source_class: type, prefix: str = PROVIDER_PREFIX) -> list[ProviderRef]:
        registered = [
            ProviderRef(name=name, declaring_class=klass, raw=staticmethod(provider))
            for klass in self._hierarchy(source_class)
            for (name, owner), provider in self._providers.items()
            if owner is klass and name.startswith(prefix)
        ]
        return registered + self.fallback.convention_providers(source_class, prefix)


class ProviderInvoker:
    """Calls providers and turns what they return into rows.

    Accepted return shapes:
    - list or tuple: normalized with RowShapeNormalizer
    - any other iterable or iterator: rows if every element is a sequence,
      otherwise each element becomes a single-value row
    """

    def __init__(
        self,
        lookup: Optional[ProviderLookup] = None,
        normalizer: Optional[RowShapeNormalizer] = None,
    ):
        self.lookup = lookup if lookup is not None else HierarchyProviderLookup()
        self.normalizer = normalizer or RowShapeNormalizer()

    def invoke(self, method_name: str, search_root: type, method_arity: int) -> list[Row]:
        """Find ``method_name`` in the hierarchy of ``search_root`` and return its rows.

        Raises:
            ProviderNotFound: If no zero-argument method of that name exists
            ProviderInvocationError: If the provider cannot be called or raises
            UnsupportedProviderReturnType: If the result cannot be read as rows
        """
        ref = self.lookup.find(method_name, search_root)
        if ref is None:
            raise ProviderNotFound(method_name, search_root)

        logger.debug(
            "Invoking parameters provider",
            method=method_name,
            declaring_class=ref.declaring_class.__qualname__,
        )
        return self._rows_from(ref, search_root, method_arity)

    def invoke_all_convention_providers(self, source_class: type, method_arity: int) -> list[Row]:
        """Concatenate the rows of every ``provide*`` method in the source hierarchy.

        Rows from subclass providers come before rows from base class
        providers; within a class, declaration order is kept.

        Raises:
            ProviderNotStatic: If a provider is a plain instance method
            NoProvidersFound: If no provider yields any row
        """
        rows: list[Row] = []
        for ref in self.lookup.convention_providers(source_class, PROVIDER_PREFIX):
            if not ref.is_static:
                raise ProviderNotStatic(ref.name, ref.declaring_class)
            rows.extend(self._rows_from(ref, source_class, method_arity))

        if not rows:
            raise NoProvidersFound(source_class)

        logger.debug(
            "Collected convention provider rows",
            source_class=source_class.__qualname__,
            count=len(rows),
        )
        return rows

    def _rows_from(self, ref: ProviderRef, owner: type, method_arity: int) -> list[Row]:
        try:
            result = ref.call(owner)
            return self.rows_from_result(result, ref, method_arity)
        except ParameterizationError:
            raise
        except Exception as e:
            raise ProviderInvocationError(ref.name, ref.declaring_class, e) from e

    def rows_from_result(self, result: Any, ref: ProviderRef, method_arity: int) -> list[Row]:
        """Interpret a provider's return value as rows.

        A row holding a single string is comma split for multi-value methods,
        as literal and file rows are.
        """
        if result is None or isinstance(result, (str, bytes, Mapping)):
            raise UnsupportedProviderReturnType(ref.name, ref.declaring_class, result)

        if isinstance(result, (list, tuple)):
            return self._split_string_rows(self.normalizer.normalize(result, method_arity), method_arity)

        if isinstance(result, (Iterable, Iterator)):
            items = list(result)
            if all(is_row_like(item) for item in items):
                rows = [tuple(item) for item in items]
            else:
                rows = [(item,) for item in items]
            return self._split_string_rows(rows, method_arity)

        raise UnsupportedProviderReturnType(ref.name, ref.declaring_class, result)

    def _split_string_rows(self, rows: list[Row], method_arity: int) -> list[Row]:
        if method_arity <= 1:
            return rows
        return [
            self.normalizer.split_string_row(row[0], method_arity)
            if len(row) == 1 and isinstance(row[0], str) else row
            for row in rows
        ]
