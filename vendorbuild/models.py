import enum
import os
from dataclasses import dataclass, field
from typing import Optional

from packaging.version import Version


class Stage(enum.Enum):
    PARSE = "Parse"
    EXTRACT = "Extract"
    CONFIGURE = "Configure"
    COMPILE = "Compile"
    INSTALL = "Install"

    @property
    def log_name(self):
        return STAGE_LOG_NAMES.get(self)


STAGE_LOG_NAMES = {
    Stage.CONFIGURE: "configure.log",
    Stage.COMPILE: "make.log",
    Stage.INSTALL: "install.log",
}


class Status(enum.Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class JobState(enum.Enum):
    """States of the per-job build state machine."""

    STAGED = "Staged"
    CONFIGURING = "Configuring"
    COMPILING = "Compiling"
    INSTALLING = "Installing"
    DONE = "Done"
    FAILED = "Failed"


# Legal transitions; FAILED is reachable from every non-terminal state.
TRANSITIONS = {
    JobState.STAGED: {JobState.CONFIGURING, JobState.FAILED},
    JobState.CONFIGURING: {JobState.COMPILING, JobState.FAILED},
    JobState.COMPILING: {JobState.INSTALLING, JobState.FAILED},
    JobState.INSTALLING: {JobState.DONE, JobState.FAILED},
    JobState.DONE: set(),
    JobState.FAILED: set(),
}


@dataclass(frozen=True)
class DependencySpec:
    """Where to look for an optional native library and how to recognise it.

    ``roots`` is probed in order. Entries are literal directories or one of
    the tool-backed forms ``env:VAR``, ``pkg-config:module`` and
    ``brew:formula``. ``markers`` are file names or glob patterns looked up
    inside ``<root>/<lib_subdir>``.
    """

    name: str
    roots: tuple
    lib_subdirs: tuple = ("lib", "lib64")
    markers: tuple = ()
    include_subdir: str = "include"
    relocate_for: tuple = ()
    relocate_patterns: tuple = ()


@dataclass(frozen=True)
class ResolvedDependency:
    name: str
    root: str
    lib_dir: str
    include_dir: str
    library: str = ""
    source: str = ""


@dataclass(frozen=True)
class PackageJob:
    archive: str
    name: str
    version: str
    major: int
    extract_dir: str
    log_dir: str

    @property
    def sort_key(self):
        return Version(self.version)

    @property
    def archive_name(self):
        return os.path.basename(self.archive)

    def log_file(self, stage: Stage) -> Optional[str]:
        if stage.log_name is None:
            return None
        return os.path.join(self.log_dir, stage.log_name)


@dataclass(frozen=True)
class BuildOutcome:
    archive: str
    job: Optional[PackageJob]
    status: Status
    stage: Optional[Stage] = None
    error: Optional[str] = None
    log_file: Optional[str] = None
    source_tree: Optional[str] = None
    tail: tuple = field(default=(), compare=False)

    @property
    def succeeded(self):
        return self.status is Status.SUCCEEDED

    @property
    def identifier(self):
        if self.job is None:
            return os.path.basename(self.archive)
        return os.path.basename(self.job.log_dir)
