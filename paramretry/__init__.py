"""paramretry: one test body, many input rows, bounded retry."""

from paramretry.config import Settings, get_settings
from paramretry.parameterized import (
    ParameterizedRunner,
    RecordingNotifier,
    assume,
    file_parameters,
    ignore,
    parameters,
)

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "get_settings",
    "ParameterizedRunner",
    "RecordingNotifier",
    "assume",
    "file_parameters",
    "ignore",
    "parameters",
]
