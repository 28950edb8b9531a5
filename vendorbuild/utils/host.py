import os
import platform
import sys

from .command_executor import run_shell_command


def platform_key(system=None):
    """Map the running OS onto the keys used by the dependency and recipe tables."""
    system = (system or platform.system()).lower()
    if system.startswith("win"):
        return "windows"
    if system == "darwin":
        return "darwin-rosetta" if is_rosetta() else "darwin"
    return "linux"


def is_windows(key=None):
    return (key or platform_key()) == "windows"


def is_darwin(key=None):
    return (key or platform_key()).startswith("darwin")


def is_rosetta():
    """
    True when an x86_64 process runs translated on Apple silicon.

    ``brew --prefix`` then reports the arm64 Homebrew, while the libraries the
    build needs live under the x86_64 Homebrew in /usr/local.
    """
    if sys.platform != "darwin" or platform.machine() != "x86_64":
        return False
    stdout, _, returncode = run_shell_command(["sysctl", "-n", "sysctl.proc_translated"])
    return returncode == 0 and stdout.strip() == "1"


def default_jobs():
    return os.cpu_count() or 4
