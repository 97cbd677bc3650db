"""Reporting sinks for parameterized test execution.

A sink receives begin/end events and outcomes for reporting nodes:
- RunNotifier: The sink protocol
- RecordingNotifier: Keeps every event in memory (summaries, tests)
- LoggingNotifier: Writes every event to structlog
- CompositeNotifier: Fans events out to several sinks
- EachTestNotifier: A sink bound to one reporting node
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from paramretry.parameterized.models import Description

logger = structlog.get_logger()


class RunNotifier(Protocol):
    """Receives execution events for reporting nodes."""

    def begin(self, node: Description) -> None:
        ...

    def end(self, node: Description) -> None:
        ...

    def report_assumption_failure(self, node: Description, detail: BaseException) -> None:
        ...

    def report_failure(self, node: Description, error: BaseException) -> None:
        ...

    def report_ignored(self, node: Description) -> None:
        ...


class EventType(str, Enum):
    """Types of notification events."""

    BEGIN = "begin"
    END = "end"
    ASSUMPTION_FAILURE = "assumption_failure"
    FAILURE = "failure"
    IGNORED = "ignored"


class NotificationEvent(BaseModel):
    """One event received by a RecordingNotifier."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: EventType
    node: str = Field(..., description="Display name of the reporting node")
    error: Optional[BaseException] = Field(None, description="Failure or assumption error")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "node": self.node,
            "error": str(self.error) if self.error is not None else None,
            "timestamp": self.timestamp.isoformat(),
        }


class RecordingNotifier:
    """Sink that records every event in order."""

    def __init__(self):
        self.events: list[NotificationEvent] = []

    def _record(self, event_type: EventType, node: Description, error: Optional[BaseException] = None) -> None:
        self.events.append(NotificationEvent(type=event_type, node=node.display_name, error=error))

    def begin(self, node: Description) -> None:
        self._record(EventType.BEGIN, node)

    def end(self, node: Description) -> None:
        self._record(EventType.END, node)

    def report_assumption_failure(self, node: Description, detail: BaseException) -> None:
        self._record(EventType.ASSUMPTION_FAILURE, node, detail)

    def report_failure(self, node: Description, error: BaseException) -> None:
        self._record(EventType.FAILURE, node, error)

    def report_ignored(self, node: Description) -> None:
        self._record(EventType.IGNORED, node)

    def of_type(self, event_type: EventType) -> list[NotificationEvent]:
        return [e for e in self.events if e.type == event_type]

    def clear(self) -> None:
        self.events.clear()


class LoggingNotifier:
    """Sink that writes events as structured log entries."""

    def __init__(self, log: Optional[structlog.BoundLogger] = None):
        self.log = log or logger

    def begin(self, node: Description) -> None:
        self.log.info("Test started", node=node.display_name)

    def end(self, node: Description) -> None:
        self.log.info("Test finished", node=node.display_name)

    def report_assumption_failure(self, node: Description, detail: BaseException) -> None:
        self.log.info("Test assumption failed", node=node.display_name, detail=str(detail))

    def report_failure(self, node: Description, error: BaseException) -> None:
        self.log.error(
            "Test failed",
            node=node.display_name,
            error=str(error),
            error_type=type(error).__name__,
        )

    def report_ignored(self, node: Description) -> None:
        self.log.info("Test ignored", node=node.display_name)


class CompositeNotifier:
    """Sink forwarding every event to each of its sinks in order."""

    def __init__(self, *notifiers: RunNotifier):
        self.notifiers = list(notifiers)

    def begin(self, node: Description) -> None:
        for notifier in self.notifiers:
            notifier.begin(node)

    def end(self, node: Description) -> None:
        for notifier in self.notifiers:
            notifier.end(node)

    def report_assumption_failure(self, node: Description, detail: BaseException) -> None:
        for notifier in self.notifiers:
            notifier.report_assumption_failure(node, detail)

    def report_failure(self, node: Description, error: BaseException) -> None:
        for notifier in self.notifiers:
            notifier.report_failure(node, error)

    def report_ignored(self, node: Description) -> None:
        for notifier in self.notifiers:
            notifier.report_ignored(node)


class EachTestNotifier:
    """A sink bound to a single reporting node."""

    def __init__(self, notifier: RunNotifier, node: Description):
        self.notifier = notifier
        self.node = node

    def fire_test_started(self) -> None:
        self.notifier.begin(self.node)

    def fire_test_finished(self) -> None:
        self.notifier.end(self.node)

    def add_failed_assumption(self, detail: BaseException) -> None:
        self.notifier.report_assumption_failure(self.node, detail)

    def add_failure(self, error: BaseException) -> None:
        self.notifier.report_failure(self.node, error)
