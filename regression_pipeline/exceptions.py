"""
Exceptions raised by the regression pipelines.
"""

from pathlib import Path
from typing import Optional


class DataFormatError(ValueError):
    """A row of an input file cannot be parsed into the expected layout."""

    def __init__(self, message: str, path: Optional[Path] = None, line: Optional[int] = None):
        self.path = path
        self.line = line
        location = ""
        if path is not None:
            location = f"{path}"
            if line is not None:
                location += f":{line}"
            location += ": "
        super().__init__(f"{location}{message}")


class TrainingError(RuntimeError):
    """Training data is empty or otherwise unusable by the trainer."""


class ModelFormatError(ValueError):
    """A saved model archive is unreadable or has an unsupported format."""
