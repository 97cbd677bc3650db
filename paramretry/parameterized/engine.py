"""Parameter resolution engine.

This module provides the ParameterSpecResolver class which decides which rows
feed a test method. Sources are consulted in a fixed order, the first one that
applies wins:

1. The runtime override string (``PARAMETERS``), for every parameterised method
2. Literal rows written on the ``@parameters`` marker
3. Provider methods (named, discovered by convention, or the default name)
4. A parameter file mapped by a DataMapper
5. Nothing: the method is not parameterised and gets no rows

Resolved rows are memoized on the descriptor.
"""

from typing import Any, Optional, Sequence

import structlog

from paramretry.config import Settings, get_settings
from paramretry.parameterized.data_sources import FileParameterSource
from paramretry.parameterized.errors import ProviderNotFound, RowArityError
from paramretry.parameterized.models import (
    Description,
    FileSpec,
    LiteralSpec,
    OverrideSpec,
    Row,
    SourceSpec,
    TestMethodDescriptor,
    stringify,
)
from paramretry.parameterized.normalizer import RowShapeNormalizer
from paramretry.parameterized.providers import ProviderInvoker

logger = structlog.get_logger()


def default_provider_names(method_name: str) -> list[str]:
    """Provider names tried when a method names no source: parametersForX, then parameters_for_x."""
    capitalized = method_name[:1].upper() + method_name[1:]
    return [f"parametersFor{capitalized}", f"parameters_for_{method_name}"]


class ParameterSpecResolver:
    """Resolves the ordered rows of a test method.

    Example:
        resolver = ParameterSpecResolver(settings=Settings(parameters=None))
        descriptor = TestMethodDescriptor(CalculatorTest.test_add, CalculatorTest)

        for index, row in enumerate(resolver.resolve(descriptor)):
            print(stringify(row, index))
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        invoker: Optional[ProviderInvoker] = None,
        normalizer: Optional[RowShapeNormalizer] = None,
    ):
        """Initialize the resolver.

        Args:
            settings: Run settings holding the override string and flat mode
            invoker: Provider invoker (default: hierarchy lookup)
            normalizer: Row shape normalizer
        """
        self.settings = settings if settings is not None else get_settings()
        self.normalizer = normalizer or RowShapeNormalizer()
        self.invoker = invoker or ProviderInvoker(normalizer=self.normalizer)

    @property
    def flat(self) -> bool:
        return self.settings.params_flat

    def override_spec(self) -> Optional[OverrideSpec]:
        if self.settings.parameters is None:
            return None
        return OverrideSpec(raw=self.settings.parameters)

    def resolve(self, descriptor: TestMethodDescriptor) -> list[Row]:
        """Return the rows for ``descriptor``, computing them on first call.

        Raises:
            ParameterizationError: If a provider or file cannot produce rows,
                or a row does not match the method's parameter count
        """
        return descriptor.memoized_rows(lambda: self._resolve(descriptor))

    def _resolve(self, descriptor: TestMethodDescriptor) -> list[Row]:
        if not descriptor.is_parameterised:
            return []

        override = self.override_spec()
        if override is not None:
            logger.debug("Using parameter override", method=descriptor.name, raw=override.raw)
            rows = self._coerce_rows(override.split(), descriptor.arity)
        else:
            rows = self._from_spec(descriptor.spec, descriptor)

        self._check_arity(descriptor, rows)
        logger.debug("Resolved parameters", method=descriptor.name, count=len(rows))
        return rows

    def _from_spec(self, spec: Any, descriptor: TestMethodDescriptor) -> list[Row]:
        if isinstance(spec, LiteralSpec):
            rows = self._coerce_rows(spec.rows, descriptor.arity)
            if not rows and spec.fallback is not None:
                rows = self._from_source(spec.fallback, descriptor)
            return rows

        if isinstance(spec, SourceSpec):
            return self._from_source(spec, descriptor)

        if isinstance(spec, FileSpec):
            raw = FileParameterSource(spec, anchor=descriptor.test_class).load()
            return self._coerce_rows(raw, descriptor.arity)

        return []

    def _from_source(self, spec: SourceSpec, descriptor: TestMethodDescriptor) -> list[Row]:
        search_root = spec.source or descriptor.test_class
        arity = descriptor.arity

        if spec.methods:
            rows: list[Row] = []
            for method_name in spec.methods:
                rows.extend(self.invoker.invoke(method_name, search_root, arity))
        elif spec.source is not None:
            rows = self.invoker.invoke_all_convention_providers(spec.source, arity)
        else:
            return self._from_default_provider(descriptor, search_root, required=True)

        if not rows:
            rows = self._from_default_provider(descriptor, search_root, required=False)
        return rows

    def _from_default_provider(
        self, descriptor: TestMethodDescriptor, search_root: type, required: bool
    ) -> list[Row]:
        """Rows of ``parametersFor<Name>`` (or ``parameters_for_<name>``).

        When the default provider is only a fallback for empty results, its
        absence leaves the method without rows instead of failing.
        """
        names = default_provider_names(descriptor.name)
        for name in names:
            if self.invoker.lookup.find(name, search_root) is not None:
                return self.invoker.invoke(name, search_root, descriptor.arity)
        if required:
            raise ProviderNotFound(names[0], search_root)
        return []

    def _coerce_rows(self, raw: Sequence[Any], arity: int) -> list[Row]:
        """Each element is one row; strings are comma split for multi-value methods."""
        return [self.normalizer.split_string_row(value, arity) for value in raw]

    def _check_arity(self, descriptor: TestMethodDescriptor, rows: list[Row]) -> None:
        if descriptor.variadic:
            return
        for index, row in enumerate(rows):
            if len(row) != descriptor.arity:
                raise RowArityError(descriptor.name, index, row, descriptor.arity)

    def is_ignored(self, descriptor: TestMethodDescriptor) -> bool:
        """Explicitly ignored, or parameterised but without any row."""
        if descriptor.explicitly_ignored:
            return True
        return descriptor.is_parameterised and len(self.resolve(descriptor)) == 0

    def warn_if_no_params(self, descriptor: TestMethodDescriptor) -> bool:
        """Log the auto-ignore warning once per method. Returns whether it applies."""
        if descriptor.explicitly_ignored or not descriptor.is_parameterised:
            return False
        if self.resolve(descriptor):
            return False
        if descriptor.mark_warned():
            logger.warning(
                "Method gets empty list of parameters, so it's being ignored",
                method=descriptor.name,
                test_class=descriptor.test_class.__qualname__,
            )
        return True

    def describe(self, descriptor: TestMethodDescriptor) -> Description:
        """Build the reporting node for a method.

        A parameterised method that runs gets one child per row named
        ``[index] values (method)``; otherwise, or in flat mode, it is a
        single node.
        """
        if descriptor.is_parameterised and not self.flat and not self.is_ignored(descriptor):
            suite = Description(display_name=descriptor.name, test_class=descriptor.test_class)
            for index, row in enumerate(self.resolve(descriptor)):
                suite.add_child(
                    Description(
                        display_name=f"{stringify(row, index)} ({descriptor.name})",
                        test_class=descriptor.test_class,
                    )
                )
            return suite
        return Description(display_name=descriptor.name, test_class=descriptor.test_class)
