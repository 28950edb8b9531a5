import fnmatch
import glob
import os
import shutil
from typing import Optional

from ..cli_logger import logger
from ..dependencies import INSTALL_HINTS
from ..models import DependencySpec, ResolvedDependency
from .command_executor import run_shell_command


def _pkg_config_root(module, env):
    if not shutil.which("pkg-config", path=env.get("PATH")):
        return None, []
    _, _, returncode = run_shell_command(["pkg-config", "--exists", module], env=dict(env))
    if returncode != 0:
        return None, []
    prefix, _, returncode = run_shell_command(["pkg-config", "--variable=prefix", module], env=dict(env))
    if returncode != 0 or not prefix.strip():
        return None, []
    libdir, _, _ = run_shell_command(["pkg-config", "--variable=libdir", module], env=dict(env))
    return prefix.strip(), [libdir.strip()] if libdir.strip() else []


def _brew_root(formula, env, x86_64=False):
    if x86_64:
        command = ["arch", "-x86_64", "/usr/local/bin/brew", "--prefix", formula]
    elif shutil.which("brew", path=env.get("PATH")):
        command = ["brew", "--prefix", formula]
    else:
        return None
    stdout, _, returncode = run_shell_command(command)
    if returncode != 0 or not stdout.strip():
        return None
    return stdout.strip()


def candidate_roots(spec: DependencySpec, env=None):
    """
    Yields ``(root, source, extra_lib_dirs)`` for each entry of ``spec.roots``,
    in priority order. Tool-backed roots whose tool is missing or does not
    know the library are skipped.
    """
    env = os.environ if env is None else env
    for entry in spec.roots:
        kind, _, value = entry.partition(":")
        # Windows drive letters ("C:\...") are literal paths.
        if len(kind) == 1 or not value:
            yield entry, entry, []
        elif kind == "env":
            root = env.get(value)
            if root:
                yield root, entry, []
        elif kind == "pkg-config":
            root, lib_dirs = _pkg_config_root(value, env)
            if root:
                yield root, entry, lib_dirs
        elif kind in ("brew", "brew-x86_64"):
            root = _brew_root(value, env, x86_64=(kind == "brew-x86_64"))
            if root:
                yield root, entry, []
        else:
            logger.warning(f"Unknown root form '{entry}' for dependency {spec.name}; ignoring it.")


def find_marker(lib_dir, markers):
    """Returns the first file in ``lib_dir`` matching one of ``markers``."""
    if not os.path.isdir(lib_dir):
        return None
    for marker in markers:
        if any(ch in marker for ch in "*?["):
            matches = sorted(
                path for path in glob.glob(os.path.join(glob.escape(lib_dir), marker))
                if os.path.isfile(path)
            )
            if matches:
                return matches[0]
        else:
            path = os.path.join(lib_dir, marker)
            if os.path.isfile(path):
                return path
    return None


def locate(spec: DependencySpec, env=None) -> Optional[ResolvedDependency]:
    """
    Probes root x lib-subdir combinations and returns the first hit.

    Absence is a normal outcome and is reported as ``None``; the caller
    decides whether that disables a feature or fails the build.
    """
    for root, source, extra_lib_dirs in candidate_roots(spec, env):
        lib_dirs = list(extra_lib_dirs) + [os.path.join(root, sub) for sub in spec.lib_subdirs]
        for lib_dir in lib_dirs:
            marker = find_marker(lib_dir, spec.markers)
            if marker:
                logger.debug(f"  - {spec.name}: matched {marker} (via {source})")
                return ResolvedDependency(
                    name=spec.name,
                    root=root,
                    lib_dir=lib_dir,
                    include_dir=os.path.join(root, spec.include_subdir),
                    library=marker,
                    source=source,
                )
    return None


def locate_all(specs, env=None, quiet=False):
    """Runs :func:`locate` once per spec. Returns ``{name: ResolvedDependency | None}``."""
    resolved = {}
    for name, spec in specs.items():
        found = locate(spec, env)
        resolved[name] = found
        if quiet:
            continue
        if found:
            logger.info(f"Found {name} at: {found.root}")
        else:
            logger.warning(f"{name} not found -- building without it.")
            for hint in INSTALL_HINTS.get(name, []):
                logger.warning(f"  {hint}")
    return resolved


def normalize_layout(resolved: ResolvedDependency, spec: DependencySpec, build_system) -> ResolvedDependency:
    """
    Copies a dependency's library files into ``<root>/lib`` when the build
    system hardcodes that location and the library lives elsewhere.

    Only applies to the build systems listed in ``spec.relocate_for``; every
    other combination is returned untouched.
    """
    if resolved is None or build_system not in spec.relocate_for:
        return resolved

    patterns = spec.relocate_patterns or spec.markers
    expected = os.path.join(resolved.root, "lib")
    if os.path.normcase(os.path.abspath(resolved.lib_dir)) == os.path.normcase(os.path.abspath(expected)):
        return resolved

    os.makedirs(expected, exist_ok=True)
    copied = 0
    for entry in sorted(os.listdir(resolved.lib_dir)):
        source = os.path.join(resolved.lib_dir, entry)
        if not os.path.isfile(source):
            continue
        if not any(fnmatch.fnmatch(entry, pattern) for pattern in patterns):
            continue
        destination = os.path.join(expected, entry)
        if not os.path.exists(destination):
            shutil.copy2(source, destination)
            copied += 1

    logger.warning(f"  - Copied {copied} {spec.name} library file(s) from {resolved.lib_dir} to {expected} for {build_system}.")
    return ResolvedDependency(
        name=resolved.name,
        root=resolved.root,
        lib_dir=expected,
        include_dir=resolved.include_dir,
        library=os.path.join(expected, os.path.basename(resolved.library)) if resolved.library else "",
        source=resolved.source,
    )
