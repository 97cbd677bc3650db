"""Markers declaring where a test method's rows come from.

Usage:
    class CalculatorTest:

        @parameters((1, 1, 2), (2, 3, 5))
        def test_add(self, a, b, expected):
            assert a + b == expected

        @parameters("1, 2, 3", "4, 5, 9")
        def test_add_strings(self, a, b, expected):
            assert int(a) + int(b) == int(expected)

        @parameters(source=SumProviders)
        def test_add_from_providers(self, a, b, expected):
            ...

        @parameters(method="small_sums, large_sums")
        def test_add_from_named_providers(self, a, b, expected):
            ...

        @file_parameters("classpath:sums.csv", mapper=CsvWithHeaderMapper)
        def test_add_from_file(self, a, b, expected):
            ...
"""

from typing import Any, Callable, Optional, Sequence, Union

from paramretry.parameterized.models import (
    FILE_PARAMETERS_MARKER,
    IGNORE_MARKER,
    PARAMETERS_MARKER,
    FileSpec,
    LiteralSpec,
    SourceSpec,
)


def parameters(
    *rows: Any,
    source: Optional[type] = None,
    method: Optional[Union[str, Sequence[str]]] = None,
) -> Callable:
    """Declare literal rows, or the provider source of a test method's rows.

    Args:
        *rows: Literal rows; each is a tuple of values, a single value, or a
            comma separated string
        source: Class whose ``provide*`` methods supply the rows
        method: Provider name(s), comma separated or as a sequence

    With neither rows, source nor method, the provider named
    ``parametersFor<MethodName>`` (or ``parameters_for_<method_name>``) on the
    test class supplies the rows. ``provide*`` methods of the test class are
    not discovered in that case; pass ``source=`` to use convention discovery,
    including on the test class itself.
    """
    source_spec = SourceSpec(source=source, methods=method)

    if rows:
        spec: Union[LiteralSpec, SourceSpec] = LiteralSpec(
            rows=rows,
            fallback=source_spec if (source is not None or method) else None,
        )
    else:
        spec = source_spec

    def decorator(func: Callable) -> Callable:
        setattr(func, PARAMETERS_MARKER, spec)
        return func

    return decorator


def file_parameters(path: str, mapper: Optional[type] = None, encoding: str = "utf-8") -> Callable:
    """Declare a parameter file as the source of a test method's rows.

    Args:
        path: ``[file:|classpath:]path`` reference
        mapper: DataMapper subclass (default: IdentityMapper, one row per line)
        encoding: File encoding

    Raises:
        UnsupportedScheme: If the reference uses an unknown scheme
    """
    spec = FileSpec(path=path, mapper=mapper, encoding=encoding)

    def decorator(func: Callable) -> Callable:
        setattr(func, FILE_PARAMETERS_MARKER, spec)
        return func

    return decorator


def ignore(reason: Union[str, Callable, None] = None) -> Callable:
    """Mark a test method as ignored. Usable bare (``@ignore``) or with a reason."""
    if callable(reason):
        setattr(reason, IGNORE_MARKER, "")
        return reason

    def decorator(func: Callable) -> Callable:
        setattr(func, IGNORE_MARKER, reason or "")
        return func

    return decorator
