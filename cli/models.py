"""Command request and result data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class UploadDifCommand:
    """Upload debug information files; each entry is PATH or PATH=DEBUG_ID."""

    files: tuple[str, ...]
    org: Optional[str] = None
    project: Optional[str] = None
    wait: bool = False
    max_wait: Optional[float] = None
    deadline: Optional[float] = None
    no_upload: bool = False
    command: Literal["upload-dif"] = "upload-dif"


@dataclass(frozen=True)
class UploadBundleCommand:
    """Upload source/artifact bundles for a release."""

    files: tuple[str, ...]
    org: Optional[str] = None
    project: Optional[str] = None
    release: Optional[str] = None
    dist: Optional[str] = None
    wait: bool = False
    max_wait: Optional[float] = None
    deadline: Optional[float] = None
    no_upload: bool = False
    command: Literal["upload-bundle"] = "upload-bundle"


@dataclass(frozen=True)
class HelpCommand:
    """Print usage."""

    command: Literal["help"] = "help"


@dataclass(frozen=True)
class CommandResult:
    """Text to print and the process exit code."""

    message: str
    exit_code: int = 0


CommandRequest = UploadDifCommand | UploadBundleCommand | HelpCommand
