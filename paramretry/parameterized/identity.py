"""Invocation chain and row identity matching.

An invocation is a chain of layers: setup/teardown wrappers around the
ParameterizedInvocation that calls the test body with one row. Each layer
holds the next one in ``inner``, and the ParameterizedInvocation carries the
rendered identity of its row from construction, so the reporting node for the
row can be found without inspecting wrapper internals.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import structlog

from paramretry.parameterized.errors import IncompatibleHostRuntime
from paramretry.parameterized.models import Description, Row, stringify

logger = structlog.get_logger()


async def _await(awaitable: Any) -> Any:
    return await awaitable


class Invocation(ABC):
    """One layer of an invocation chain."""

    inner: Optional["Invocation"] = None

    @abstractmethod
    def evaluate(self) -> None:
        """Run this layer, raising on failure."""
        pass


class ParameterizedInvocation(Invocation):
    """Calls a test function on an instance with the values of one row.

    Attributes:
        target: Test class instance
        function: Unbound test function
        row: Values passed positionally after the instance
        index: Position of the row among the method's rows
        params_as_string: Rendered identity ``[index] v1, v2, ...``
    """

    def __init__(self, target: Any, function: Callable, row: Row, index: int):
        self.target = target
        self.function = function
        self.row = tuple(row)
        self.index = index
        self.params_as_string = stringify(self.row, index)
        self.inner = None

    def evaluate(self) -> None:
        result = self.function(self.target, *self.row)
        if inspect.isawaitable(result):
            asyncio.run(_await(result))

    def __repr__(self) -> str:
        return f"ParameterizedInvocation({self.function.__name__}, {self.params_as_string})"


class SetUpTearDownInvocation(Invocation):
    """Runs the instance's ``setUp`` before and ``tearDown`` after the inner layer.

    ``tearDown`` runs whenever ``setUp`` succeeded, even if the inner layer failed.
    """

    def __init__(
        self,
        inner: Invocation,
        target: Any,
        set_up: str = "setUp",
        tear_down: str = "tearDown",
    ):
        self.inner = inner
        self.target = target
        self.set_up = set_up
        self.tear_down = tear_down

    def evaluate(self) -> None:
        set_up = getattr(self.target, self.set_up, None)
        if callable(set_up):
            set_up()
        try:
            self.inner.evaluate()
        finally:
            tear_down = getattr(self.target, self.tear_down, None)
            if callable(tear_down):
                tear_down()


class InvocationIdentityMatcher:
    """Correlates a running invocation with the reporting node built for its row."""

    def find_owning_invoker(self, chain: Optional[Invocation]) -> ParameterizedInvocation:
        """Walk the chain through ``inner`` until the ParameterizedInvocation.

        Raises:
            IncompatibleHostRuntime: If the chain holds no ParameterizedInvocation
        """
        current = chain
        while current is not None and not isinstance(current, ParameterizedInvocation):
            current = getattr(current, "inner", None)

        if current is None:
            raise IncompatibleHostRuntime()
        return current

    def find_child_for_params(
        self,
        chain: Invocation,
        method_description: Description,
        flat: bool = False,
    ) -> Description:
        """Return the child node whose name starts with the running row's identity.

        In flat mode, for a method without row children, or when no child
        matches, the method node itself is used.
        """
        if flat or not method_description.children:
            return method_description

        invoker = self.find_owning_invoker(chain)
        for child in method_description.children:
            if child.display_name.startswith(invoker.params_as_string):
                return child

        logger.warning(
            "No reporting node matches the running row",
            method=method_description.display_name,
            params=invoker.params_as_string,
        )
        return method_description
