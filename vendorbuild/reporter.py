"""Drives a whole run: discovery, planning, one build per archive, summary."""

import collections
import os
import sys
from dataclasses import dataclass, field

from .builder import BuildOptions, PackageBuild
from .cli_logger import logger
from .config import build_settings
from .dependencies import get_dependency_specs
from .errors import FatalRunError, StageError, VendorBuildError, VersionParseError
from .models import BuildOutcome, JobState, PackageJob, Stage, Status
from .recipes import get_recipes
from .utils import host
from .utils.dependency_locator import locate_all
from .utils.file_manager import stage_archive
from .utils.version_parser import is_archive, parse_archive_name

LOGS_DIRNAME = "logs"


@dataclass
class RunReport:
    source_dir: str
    outcomes: list = field(default_factory=list)

    @property
    def built(self):
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self):
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def exit_code(self):
        return 1 if self.failed else 0


def discover_archives(source_dir):
    """Archive files directly inside ``source_dir``, in name order."""
    return sorted(
        os.path.join(source_dir, entry)
        for entry in os.listdir(source_dir)
        if is_archive(entry) and os.path.isfile(os.path.join(source_dir, entry))
    )


def plan_jobs(archives, source_dir, work_dir):
    """
    Parses every archive name and derives each job's directories.

    Nothing is created on disk here. Returns ``(jobs, rejected)``: the jobs
    sorted by ascending version, and a failed BuildOutcome for each archive
    whose name carries no version.
    """
    parsed, rejected = [], []
    for archive in archives:
        try:
            name, version, major = parse_archive_name(archive)
        except VersionParseError as e:
            logger.error(f"Skipping {os.path.basename(archive)}: {e}")
            rejected.append(BuildOutcome(
                archive=archive, job=None, status=Status.FAILED, stage=Stage.PARSE, error=str(e),
            ))
            continue
        parsed.append((archive, name, version, major))

    versions = collections.Counter(version for _, _, version, _ in parsed)
    packages = collections.Counter((name, version) for _, name, version, _ in parsed)
    logs_root = os.path.join(source_dir, LOGS_DIRNAME)

    jobs = []
    for archive, name, version, major in parsed:
        if versions[version] == 1:
            log_name = version
        elif packages[(name, version)] == 1:
            log_name = f"{name}-{version}"
        else:
            # Same package and version shipped in two formats.
            log_name = os.path.basename(archive)
        jobs.append(PackageJob(
            archive=archive,
            name=name,
            version=version,
            major=major,
            extract_dir=os.path.join(work_dir, f"{name}-{version}"),
            log_dir=os.path.join(logs_root, log_name),
        ))

    jobs.sort(key=lambda job: (job.sort_key, job.name, job.archive))
    return jobs, rejected


# Stage a job was in when an unexpected error escaped its build.
STATE_STAGES = {
    JobState.STAGED: Stage.CONFIGURE,
    JobState.CONFIGURING: Stage.CONFIGURE,
    JobState.COMPILING: Stage.COMPILE,
    JobState.INSTALLING: Stage.INSTALL,
    JobState.DONE: Stage.INSTALL,
}


def _failed_outcome(job, stage, error, source_tree, log_file=None, tail=()):
    return BuildOutcome(
        archive=job.archive,
        job=job,
        status=Status.FAILED,
        stage=stage,
        error=error,
        log_file=log_file,
        source_tree=source_tree,
        tail=tuple(tail),
    )


def run_job(job: PackageJob, work_dir, options: BuildOptions, show_progress=False) -> BuildOutcome:
    """
    Stages and builds one job.

    Every error raised while doing so ends up in the returned outcome, so
    one broken package never stops the run.
    """
    logger.header(f"{job.name} {job.version}")
    source_tree = None
    build = None
    try:
        source_tree = stage_archive(job, work_dir, show_progress=show_progress)
        build = PackageBuild(job, source_tree, options)
        build.run()
    except VendorBuildError as e:
        if not isinstance(e, StageError):
            logger.error(f"{e.stage.value} failed for {job.archive_name}: {e}")
        return _failed_outcome(job, e.stage, str(e), source_tree,
                               log_file=getattr(e, "log_file", None), tail=getattr(e, "tail", ()))
    except Exception as e:
        stage = Stage.EXTRACT if build is None else STATE_STAGES.get(build.state, Stage.CONFIGURE)
        logger.error(f"Unexpected error during {stage.value} of {job.archive_name}: {e}")
        logger.exception(*sys.exc_info())
        return _failed_outcome(job, stage, f"Unexpected error: {e}", source_tree)

    logger.success(f"{job.name} {job.version} built and installed.")
    return BuildOutcome(
        archive=job.archive,
        job=job,
        status=Status.SUCCEEDED,
        source_tree=source_tree,
    )


def run_build(source_dir, settings=None, platform=None, recipes=None, dependency_specs=None,
              env=None, show_progress=False) -> RunReport:
    """
    Builds every archive found in ``source_dir``, oldest version first.

    Dependencies are located once and shared, read-only, by every job.
    ``env`` replaces ``os.environ`` as the base environment of the build
    tools (tests use it to put fake tools on PATH).

    Raises:
        FatalRunError: the directory does not exist or holds no archives.
            No log directory is created in that case.
    """
    source_dir = os.path.abspath(source_dir)
    if not os.path.isdir(source_dir):
        raise FatalRunError(f"Source directory does not exist: {source_dir}")

    archives = discover_archives(source_dir)
    if not archives:
        raise FatalRunError(f"No source archives found in {source_dir}")
    logger.info(f"Found {len(archives)} archive(s) in {source_dir}")

    settings = settings or build_settings({})
    platform = platform or host.platform_key()
    recipes = get_recipes() if recipes is None else recipes
    if dependency_specs is None:
        dependency_specs = get_dependency_specs(platform)

    work_dir = settings["work_dir"]
    if not os.path.isabs(work_dir):
        work_dir = os.path.join(source_dir, work_dir)

    jobs, rejected = plan_jobs(archives, source_dir, work_dir)

    logger.header(f"Dependencies ({platform})")
    resolved = locate_all(dependency_specs, env)

    options = BuildOptions(
        platform=platform,
        jobs=settings["jobs"] or host.default_jobs(),
        tail_lines=settings["tail_lines"],
        install_prefix=settings["install_prefix"],
        require=tuple(settings["require"]),
        recipes=recipes,
        dependency_specs=dependency_specs,
        resolved=resolved,
        base_env=env,
    )

    os.makedirs(os.path.join(source_dir, LOGS_DIRNAME), exist_ok=True)

    report = RunReport(source_dir=source_dir, outcomes=list(rejected))
    for job in jobs:
        report.outcomes.append(run_job(job, work_dir, options, show_progress=show_progress))
    return report


def print_summary(report: RunReport):
    logger.header("Summary")
    built = report.built
    failed = report.failed

    if built:
        logger.success(f"Built ({len(built)}): {' '.join(o.identifier for o in built)}")
    if failed:
        logger.error(f"Failed ({len(failed)}): {' '.join(f'{o.identifier} [{o.stage.value}]' for o in failed)}")
        for outcome in failed:
            where = f" -- see {outcome.log_file}" if outcome.log_file else ""
            logger.step_info(f"{outcome.identifier}: {outcome.error}{where}", indent=2)
    if not built and not failed:
        logger.warning("Nothing was built.")
