import fnmatch
import os
import stat

from ..cli_logger import logger
from .command_executor import run_shell_command


def _dylibs(tree):
    for root, dirs, files in os.walk(tree):
        dirs[:] = [d for d in dirs if d != "CMakeFiles" and not d.startswith("conftest")]
        for name in files:
            if name.endswith(".dylib") and not os.path.islink(os.path.join(root, name)):
                yield os.path.join(root, name)


def _executables(bin_dir):
    for root, _, files in os.walk(bin_dir):
        for name in files:
            path = os.path.join(root, name)
            if os.path.isfile(path) and not os.path.islink(path) and os.stat(path).st_mode & stat.S_IXUSR:
                yield path


def _linked_libraries(binary):
    stdout, _, returncode = run_shell_command(["otool", "-L", binary])
    if returncode != 0:
        return []
    # First line is the binary itself.
    return [line.strip().split(" ")[0] for line in stdout.splitlines()[1:] if line.strip()]


def fix_dylib_rpaths(tree: str, bin_dir: str, patterns) -> bool:
    """
    Rewrites hardcoded install names so binaries find their dylibs through
    ``@executable_path/../lib`` instead of the absolute build-time path.

    Best effort: individual install_name_tool failures are logged and
    skipped. Returns False when any rewrite failed.
    """
    logger.info("Patching dylib rpaths for portability...")
    ok = True

    for dylib in _dylibs(tree):
        _, stderr, returncode = run_shell_command(
            ["install_name_tool", "-id", f"@rpath/{os.path.basename(dylib)}", dylib]
        )
        if returncode != 0:
            logger.debug(f"  - install_name_tool -id failed for {dylib}: {stderr.strip()}")
            ok = False

    if not os.path.isdir(bin_dir):
        logger.warning(f"  - No binaries directory at {bin_dir}; skipping executable rewrite.")
        return ok

    for binary in _executables(bin_dir):
        for dependency in _linked_libraries(binary):
            if not any(fnmatch.fnmatch(dependency, pattern) for pattern in patterns):
                continue
            _, stderr, returncode = run_shell_command([
                "install_name_tool",
                "-change", dependency, f"@executable_path/../lib/{os.path.basename(dependency)}",
                binary,
            ])
            if returncode != 0:
                logger.debug(f"  - install_name_tool -change failed for {binary}: {stderr.strip()}")
                ok = False

    if ok:
        logger.success("Rpath patching done.")
    else:
        logger.warning("Rpath patching finished with errors; see the session log.")
    return ok
