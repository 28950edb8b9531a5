"""Exceptions raised while staging and building vendor archives.

Everything below :class:`FatalRunError` is local to a single package job: the
run reporter catches it, stores it in that job's outcome and moves on.
"""

from .models import Stage


class VendorBuildError(Exception):
    """Base class for all vendorbuild errors."""

    stage = None


class FatalRunError(VendorBuildError):
    """The run cannot start at all (missing source directory, no archives)."""


class VersionParseError(VendorBuildError):
    """The archive file name does not carry a ``X.Y[.Z]`` version."""

    stage = Stage.PARSE

    def __init__(self, archive, message=None):
        self.archive = archive
        super().__init__(message or f"Cannot parse a version from archive name '{archive}'")


class ExtractionError(VendorBuildError):
    """Decompressing the archive failed."""

    stage = Stage.EXTRACT


class LayoutError(VendorBuildError):
    """The archive extracted, but no plausible source tree was found."""

    stage = Stage.EXTRACT


class StageError(VendorBuildError):
    """An upstream build tool exited non-zero (or could not be started)."""

    def __init__(self, message, log_file=None, tail=None, returncode=None):
        super().__init__(message)
        self.log_file = log_file
        self.tail = list(tail or [])
        self.returncode = returncode


class ConfigureError(StageError):
    stage = Stage.CONFIGURE


class CompileError(StageError):
    stage = Stage.COMPILE


class InstallError(StageError):
    stage = Stage.INSTALL


STAGE_ERRORS = {
    Stage.CONFIGURE: ConfigureError,
    Stage.COMPILE: CompileError,
    Stage.INSTALL: InstallError,
}
