import os
import shutil
from dataclasses import dataclass, field
from typing import Optional

from .cli_logger import logger
from .errors import STAGE_ERRORS
from .models import JobState, PackageJob, Stage, TRANSITIONS
from .recipes import generic_feature_flags, generic_recipe
from .utils import host
from .utils.command_executor import format_command, run_logged_command
from .utils.configure_resolver import (
    REQUIRED_TOOLS,
    _autodetect_config_type,
    resolve_config_type,
    resolve_feature_args,
)
from .utils.dependency_locator import normalize_layout
from .utils.rpath_fixer import fix_dylib_rpaths

# Compiler default search paths; adding them with -I/-L breaks #include_next.
SYSTEM_ROOTS = {"/usr", "/"}

STAGE_LABELS = {
    Stage.CONFIGURE: "configure",
    Stage.COMPILE: "build",
    Stage.INSTALL: "install",
}


@dataclass
class BuildOptions:
    """Run-wide, read-only settings shared by every job."""

    platform: str
    jobs: int
    tail_lines: int = 20
    install_prefix: str = "{source_dir}/dist"
    require: tuple = ()
    recipes: dict = field(default_factory=dict)
    dependency_specs: dict = field(default_factory=dict)
    resolved: dict = field(default_factory=dict)
    base_env: Optional[dict] = None


def _prepend(env, key, value, sep):
    current = env.get(key)
    env[key] = f"{value}{sep}{current}" if current else value


def build_environment(resolved, platform, base_env=None):
    """
    Returns the environment for a job's build tools.

    Search paths for every located dependency are prepended to
    ``PKG_CONFIG_PATH`` and ``CMAKE_PREFIX_PATH``, plus ``CPPFLAGS``/``LDFLAGS``
    on Unix or ``INCLUDE``/``LIB`` for MSVC. The process environment itself
    is never modified.
    """
    env = dict(os.environ if base_env is None else base_env)
    windows = host.is_windows(platform)
    sep = ";" if windows else ":"

    for dependency in resolved.values():
        if dependency is None:
            continue
        _prepend(env, "PKG_CONFIG_PATH", os.path.join(dependency.lib_dir, "pkgconfig"), sep)
        _prepend(env, "CMAKE_PREFIX_PATH", dependency.root, sep)
        if dependency.root.rstrip("/\\") in SYSTEM_ROOTS or dependency.root in SYSTEM_ROOTS:
            continue
        if windows:
            _prepend(env, "INCLUDE", dependency.include_dir, sep)
            _prepend(env, "LIB", dependency.lib_dir, sep)
        else:
            _prepend(env, "CPPFLAGS", f"-I{dependency.include_dir}", " ")
            _prepend(env, "LDFLAGS", f"-L{dependency.lib_dir}", " ")
    return env


class PackageBuild:
    """
    Drives one package job through Staged -> Configuring -> Compiling ->
    Installing -> Done. Any step may end in Failed; the failing step is
    reported through the raised StageError.
    """

    def __init__(self, job: PackageJob, source_tree: str, options: BuildOptions):
        self.job = job
        self.source_tree = source_tree
        self.options = options
        self.state = JobState.STAGED
        self.build_system = None
        self.commands = {}
        self.env = {}

    def _transition(self, new_state):
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal build state change {self.state.value} -> {new_state.value}")
        logger.debug(f"  - {self.job.name} {self.job.version}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _fail(self, stage, message, log_file=None, tail=None, returncode=None):
        if log_file is None:
            log_file = self.job.log_file(stage)
            try:
                os.makedirs(self.job.log_dir, exist_ok=True)
                with open(log_file, "a") as f:
                    f.write(message + "\n")
            except OSError as e:
                logger.warning(f"Could not write {log_file}: {e}")
        logger.error(message)
        self._transition(JobState.FAILED)
        raise STAGE_ERRORS[stage](message, log_file=log_file, tail=tail or [message], returncode=returncode)

    def _run_stage(self, stage, command, cwd):
        log_file = self.job.log_file(stage)
        label = STAGE_LABELS[stage]
        logger.info(f"  - Running {label}: {format_command(command)}")
        try:
            os.makedirs(self.job.log_dir, exist_ok=True)
            returncode, tail = run_logged_command(
                command, log_file, env=self.env, cwd=cwd, tail_lines=self.options.tail_lines
            )
        except OSError as e:
            self._fail(stage, f"{label} could not be run: {e}")

        if returncode != 0:
            logger.error(f"{label} failed (Exit Code: {returncode}) -- see {log_file}")
            if tail:
                logger.tail(tail)
            self._fail(stage, f"{label} failed with exit code {returncode}", log_file=log_file,
                       tail=tail, returncode=returncode)

    def _template_context(self):
        context = {
            "name": self.job.name,
            "version": self.job.version,
            "major": self.job.major,
            "source_dir": self.source_tree,
            "build_dir": os.path.join(self.source_tree, "build"),
            "jobs": self.options.jobs,
        }
        context["install_dir"] = self.options.install_prefix.format(**context)
        return context

    def _configure(self):
        job, options = self.job, self.options
        recipe = options.recipes.get(job.name) or generic_recipe(job.name, tuple(options.resolved))

        rule = recipe.select_rule(job.version, options.platform)
        if rule is None:
            self._fail(Stage.CONFIGURE, f"No build rule for {job.name} {job.version} on {options.platform}.")

        features = rule.features
        build_system = rule.build_system
        if build_system == "auto":
            build_system = _autodetect_config_type(self.source_tree, job.name)
            if not build_system:
                self._fail(Stage.CONFIGURE, f"No build system found in {self.source_tree}.")
            features = tuple(
                feature if feature.enabled or feature.disabled
                else generic_feature_flags(build_system, feature.dependency)
                for feature in features
            )
        self.build_system = build_system

        missing_required = [name for name in options.require if options.resolved.get(name) is None]
        if missing_required:
            self._fail(Stage.CONFIGURE, f"Required dependency not found: {', '.join(missing_required)}")

        try:
            resolved = {
                name: normalize_layout(found, options.dependency_specs[name], build_system)
                if name in options.dependency_specs else found
                for name, found in options.resolved.items()
            }
        except OSError as e:
            self._fail(Stage.CONFIGURE, f"Could not normalise dependency layout: {e}")

        try:
            context = self._template_context()
            install_dir = context["install_dir"]
            configure_args = resolve_feature_args(features, resolved, context)
            configure_args += [arg.format(**context) for arg in rule.extra_args]
            self.commands = resolve_config_type(
                package_name=job.name,
                build_system=build_system,
                package_source_path=self.source_tree,
                install_dir=install_dir,
                jobs=options.jobs,
                configure_args=configure_args,
                platform=options.platform,
            )
            env = build_environment(resolved, options.platform, options.base_env)
            for key, template in rule.env:
                env[key] = template.format(**context)
        except (KeyError, IndexError, ValueError, OSError) as e:
            self._fail(Stage.CONFIGURE, f"Could not resolve build commands: {e}")

        self.env = env
        self.env.update(self.commands["env"])

        path = self.env.get("PATH")
        missing_tools = [
            tool for tool in REQUIRED_TOOLS.get(build_system, []) + list(recipe.required_tools)
            if not shutil.which(tool, path=path)
        ]
        if missing_tools:
            self._fail(Stage.CONFIGURE, f"Required tool(s) not found on PATH: {', '.join(dict.fromkeys(missing_tools))}")
        for tool in recipe.optional_tools:
            if not shutil.which(tool, path=path):
                logger.warning(f"  - {tool} not found -- the {job.name} build may fail.")

        configure_cmd = self.commands["configure_command"]
        if configure_cmd:
            self._run_stage(Stage.CONFIGURE, configure_cmd, self.commands["configure_cwd"])
            logger.success("Configure done.")
        else:
            logger.info(f"  - No configure step for {build_system}.")

    def _compile(self):
        logger.info(f"  - Compiling with {self.options.jobs} jobs...")
        self._run_stage(Stage.COMPILE, self.commands["build_command"], self.commands["cwd"])
        logger.success("Build complete.")

    def _install(self):
        install_cmd = self.commands["install_command"]
        if not install_cmd:
            logger.info(f"  - No install step for {self.build_system}.")
            return
        self._run_stage(Stage.INSTALL, install_cmd, self.commands["install_cwd"])
        logger.success("Install done.")

        recipe = self.options.recipes.get(self.job.name)
        if host.is_darwin(self.options.platform) and recipe is not None and recipe.rpath_bin_dir:
            fix_dylib_rpaths(
                self.source_tree,
                os.path.join(self.source_tree, recipe.rpath_bin_dir),
                recipe.rpath_patterns,
            )

    def run(self):
        self._transition(JobState.CONFIGURING)
        self._configure()
        self._transition(JobState.COMPILING)
        self._compile()
        self._transition(JobState.INSTALLING)
        self._install()
        self._transition(JobState.DONE)
        return self


def build_package(job: PackageJob, source_tree: str, options: BuildOptions) -> PackageBuild:
    """
    Configures, compiles and installs one staged package.

    Raises:
        ConfigureError, CompileError, InstallError: the matching step failed.
    """
    return PackageBuild(job, source_tree, options).run()
