from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SheafyError(Exception):
    """Base exception for errors in the sheafy package."""

    def __str__(self) -> str:
        return getattr(self, "message", self.__class__.__doc__ or self.__class__.__name__)


@dataclass(frozen=True)
class ConfigError(SheafyError):
    """Raised when the project configuration cannot be read or validated."""

    path: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Invalid configuration in {self.path}: {self.reason}"


@dataclass(frozen=True)
class ConfigExistsError(SheafyError):
    """Raised by `init` when a configuration file is already present."""

    path: Path

    @property
    def message(self) -> str:
        return f"Config file already exists: {self.path}"


@dataclass(frozen=True)
class ConflictingFlagsError(SheafyError):
    """Raised when mutually exclusive command line flags are combined."""

    message: str = "Cannot specify both --use-gitignore and --no-gitignore"


@dataclass(frozen=True)
class MissingFiltersError(SheafyError):
    """Raised when no extension filter is given on the command line or in the config."""

    message: str = "No file filters provided via flags or in config. Cannot proceed."


@dataclass(frozen=True)
class BundleWriteError(SheafyError):
    """Raised when the bundle file itself cannot be created or written."""

    path: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Failed to write bundle {self.path}: {self.reason}"


@dataclass(frozen=True)
class BundleReadError(SheafyError):
    """Raised when the bundle to restore from cannot be read."""

    path: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Failed to read bundle {self.path}: {self.reason}"
