"""Row shape normalization.

Providers and markers hand back rows in several shapes. Normalization decides
whether a raw list is one row or many, and converts every element to a tuple.
"""

from typing import Any, Sequence

from paramretry.parameterized.models import Row


def is_row_like(value: Any) -> bool:
    """Lists and tuples are rows; strings, bytes and everything else are scalars."""
    return isinstance(value, (list, tuple))


def as_row(value: Any) -> Row:
    """Convert one element into a row, wrapping scalars into a single-value row."""
    if is_row_like(value):
        return tuple(value)
    return (value,)


class RowShapeNormalizer:
    """Decides whether a raw provider result is a single row or a list of rows.

    When the number of raw elements equals the method arity the result is
    ambiguous: ``[1, 2]`` for a two-argument method could be two one-value
    rows or one two-value row. The first element decides: a scalar means the
    whole list is one row, a sequence means it is already a list of rows.
    """

    def normalize(self, raw_rows: Sequence[Any], method_arity: int) -> list[Row]:
        raw_rows = list(raw_rows)

        if not raw_rows:
            return []

        if len(raw_rows) != method_arity:
            return [as_row(r) for r in raw_rows]

        if is_row_like(raw_rows[0]):
            return [as_row(r) for r in raw_rows]

        return [tuple(raw_rows)]

    def split_string_row(self, value: Any, method_arity: int) -> Row:
        """Split ``"a, b"`` into ``("a", "b")`` for methods taking several values."""
        if isinstance(value, str) and method_arity > 1:
            return tuple(part.strip() for part in value.split(","))
        return as_row(value)


def normalize(raw_rows: Sequence[Any], method_arity: int) -> list[Row]:
    """Normalize with the default normalizer."""
    return RowShapeNormalizer().normalize(raw_rows, method_arity)
