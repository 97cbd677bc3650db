"""File backed parameter sources.

This module turns a file reference into rows:
- Opening a reader for ``[scheme:]path`` (``file:``, ``classpath:`` or a bare path)
- Handing the reader to a DataMapper that produces the raw rows

Mappers provided:
- IdentityMapper: Every non-blank line is one string row
- CsvMapper: Every CSV record is one row
- CsvWithHeaderMapper: Like CsvMapper, skipping the first record
- JsonMapper: An array of arrays or objects, or an object holding such an array
"""

import csv
import inspect
import json
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional, TextIO

import structlog

from paramretry.parameterized.errors import ParameterFileError
from paramretry.parameterized.models import FileSpec

logger = structlog.get_logger()


class DataMapper(ABC):
    """Turns the content of an opened parameter file into raw rows."""

    @abstractmethod
    def map(self, reader: TextIO) -> list[Any]:
        """Map file content to a list of rows.

        Args:
            reader: Text reader positioned at the start of the file

        Returns:
            List of rows; each row is a sequence of values or a single string
        """
        pass


class IdentityMapper(DataMapper):
    """Every non-blank line is a row, kept as a string.

    Strings are split on commas later when the method takes several values.
    """

    def map(self, reader: TextIO) -> list[Any]:
        return [line.rstrip("\r\n") for line in reader if line.strip()]


class CsvMapper(DataMapper):
    """Every CSV record is a row of strings."""

    delimiter = ","
    skip_header = False

    def map(self, reader: TextIO) -> list[Any]:
        records = [
            tuple(cell.strip() for cell in record)
            for record in csv.reader(reader, delimiter=self.delimiter)
            if record
        ]
        if self.skip_header:
            records = records[1:]
        return records


class CsvWithHeaderMapper(CsvMapper):
    """CSV records after the header line."""

    skip_header = True


class JsonMapper(DataMapper):
    """JSON rows.

    Supported layouts:
        1. Array of arrays: [[1, 2], [3, 4]]
        2. Array of objects: [{"a": 1, "b": 2}] (values in key order)
        3. Object holding such an array: {"rows": [[1, 2]]}
        4. Array of scalars: [1, 2, 3] (one value per row)
    """

    def map(self, reader: TextIO) -> list[Any]:
        content = json.load(reader)

        if isinstance(content, dict):
            data_list = None
            for value in content.values():
                if isinstance(value, list):
                    data_list = value
                    break
            if data_list is None:
                raise ValueError("JSON object must contain an array of rows")
        elif isinstance(content, list):
            data_list = content
        else:
            raise ValueError("JSON must be an array or object containing an array")

        rows = []
        for item in data_list:
            if isinstance(item, dict):
                rows.append(tuple(item.values()))
            elif isinstance(item, list):
                rows.append(tuple(item))
            else:
                rows.append((item,))
        return rows


def resolve_classpath_resource(name: str, anchor: Optional[type] = None) -> Path:
    """Find a resource next to the anchor class's module, then on ``sys.path``.

    Raises:
        FileNotFoundError: If the resource exists in none of the locations
    """
    name = name.lstrip("/")
    roots: list[Path] = []

    if anchor is not None:
        try:
            roots.append(Path(inspect.getfile(anchor)).resolve().parent)
        except (TypeError, OSError):
            pass

    roots.extend(Path(entry) if entry else Path.cwd() for entry in sys.path)

    for root in roots:
        candidate = root / name
        if candidate.is_file():
            return candidate

    raise FileNotFoundError(f"Resource not found on the classpath: {name}")


def _open_file(location: str, encoding: str, anchor: Optional[type]) -> TextIO:
    return open(location, "r", encoding=encoding, newline="")


def _open_classpath(location: str, encoding: str, anchor: Optional[type]) -> TextIO:
    return open(resolve_classpath_resource(location, anchor), "r", encoding=encoding, newline="")


class FileParameterSource:
    """Loads raw rows for a FileSpec.

    Example:
        spec = FileSpec(path="classpath:users.csv", mapper=CsvWithHeaderMapper)
        rows = FileParameterSource(spec, anchor=UserTest).load()
    """

    _openers: dict[Optional[str], Callable[[str, str, Optional[type]], TextIO]] = {
        None: _open_file,
        "file": _open_file,
        "classpath": _open_classpath,
    }

    def __init__(self, spec: FileSpec, anchor: Optional[type] = None):
        self.spec = spec
        self.anchor = anchor

    def open_reader(self) -> TextIO:
        """Open a reader for the referenced file, chosen by its scheme."""
        opener = self._openers[self.spec.scheme]
        return opener(self.spec.location, self.spec.encoding, self.anchor)

    def create_mapper(self) -> DataMapper:
        mapper_class = self.spec.mapper or IdentityMapper
        return mapper_class()

    def load(self) -> list[Any]:
        """Read and map the file.

        Raises:
            ParameterFileError: If the file cannot be opened, read or mapped
        """
        logger.debug("Loading parameter file", path=self.spec.path)

        try:
            mapper = self.create_mapper()
            with self.open_reader() as reader:
                rows = list(mapper.map(reader))
        except Exception as e:
            raise ParameterFileError(self.spec.path, e) from e

        logger.info("Loaded parameter file", path=self.spec.path, count=len(rows))
        return rows
