"""Built-in DependencySpec records, per platform.

New install layouts are added here (or in the ``[dependencies]`` table of
``vendorbuild.toml``), never as branches in the locator.
"""

from dataclasses import replace

from .cli_logger import logger
from .models import DependencySpec

MULTIARCH_LIB_SUBDIRS = ("lib", "lib64", "lib/x86_64-linux-gnu", "lib/aarch64-linux-gnu")

DEFAULT_DEPENDENCY_SPECS = {
    "linux": {
        "openssl": DependencySpec(
            name="openssl",
            roots=("env:OPENSSL_ROOT_DIR", "pkg-config:openssl", "/usr", "/usr/local"),
            lib_subdirs=MULTIARCH_LIB_SUBDIRS,
            markers=("libcrypto.a", "libcrypto.so", "libcrypto.so.*"),
        ),
        "icu": DependencySpec(
            name="icu",
            roots=("env:ICU_ROOT", "pkg-config:icu-uc", "/usr", "/usr/local"),
            lib_subdirs=MULTIARCH_LIB_SUBDIRS,
            markers=("libicuuc*",),
        ),
        "ncurses": DependencySpec(
            name="ncurses",
            roots=("env:NCURSES_ROOT", "pkg-config:ncurses", "/usr", "/usr/local"),
            lib_subdirs=MULTIARCH_LIB_SUBDIRS,
            markers=("libncurses.a", "libncurses.so", "libncurses.so.*"),
        ),
    },
    "darwin": {
        "openssl": DependencySpec(
            name="openssl",
            roots=("env:OPENSSL_ROOT_DIR", "brew:openssl", "/opt/homebrew/opt/openssl",
                   "/usr/local/opt/openssl", "/usr/local/ssl", "/usr"),
            markers=("libcrypto.a", "libcrypto.dylib"),
        ),
        "icu": DependencySpec(
            name="icu",
            roots=("env:ICU_ROOT", "pkg-config:icu-uc", "brew:icu4c", "/opt/homebrew/opt/icu4c",
                   "/usr/local/opt/icu4c", "/usr", "/usr/local"),
            markers=("libicuuc*",),
        ),
        "ncurses": DependencySpec(
            name="ncurses",
            roots=("env:NCURSES_ROOT", "brew:ncurses", "/opt/homebrew/opt/ncurses",
                   "/usr/local/opt/ncurses", "/usr"),
            markers=("libncurses.a", "libncurses.dylib"),
        ),
    },
    # x86_64 process on Apple silicon: the x86_64 Homebrew in /usr/local wins.
    "darwin-rosetta": {
        "openssl": DependencySpec(
            name="openssl",
            roots=("env:OPENSSL_ROOT_DIR", "/usr/local/opt/openssl", "/usr/local/ssl",
                   "brew-x86_64:openssl", "/usr"),
            markers=("libcrypto.a", "libcrypto.dylib"),
        ),
        "icu": DependencySpec(
            name="icu",
            roots=("env:ICU_ROOT", "pkg-config:icu-uc", "/usr/local/opt/icu4c",
                   "brew-x86_64:icu4c", "/usr/local", "/usr"),
            markers=("libicuuc*",),
        ),
        "ncurses": DependencySpec(
            name="ncurses",
            roots=("env:NCURSES_ROOT", "/usr/local/opt/ncurses", "brew-x86_64:ncurses", "/usr"),
            markers=("libncurses.a", "libncurses.dylib"),
        ),
    },
    "windows": {
        "openssl": DependencySpec(
            name="openssl",
            roots=("env:OPENSSL_ROOT_DIR", "C:\\Program Files\\OpenSSL-Win64",
                   "C:\\Program Files\\OpenSSL", "C:\\OpenSSL-Win64"),
            lib_subdirs=("lib", "lib\\VC\\x64\\MD", "lib64"),
            markers=("libcrypto.lib",),
        ),
        # ICU's Windows zips ship lib64\; Meson only searches lib\.
        "icu": DependencySpec(
            name="icu",
            roots=("env:ICU_ROOT", "C:\\icu", "C:\\Program Files\\icu"),
            lib_subdirs=("lib", "lib64"),
            markers=("icuuc*.lib",),
            relocate_for=("meson",),
            relocate_patterns=("icu*.lib",),
        ),
        "ncurses": DependencySpec(
            name="ncurses",
            roots=("env:NCURSES_ROOT",),
            markers=("ncurses*.lib",),
        ),
    },
}

INSTALL_HINTS = {
    "openssl": [
        "macOS:  brew install openssl",
        "Debian/Ubuntu: apt install libssl-dev",
        "RHEL/Fedora:   dnf install openssl-devel",
    ],
    "icu": [
        "macOS:  brew install icu4c",
        "Debian/Ubuntu: apt install libicu-dev",
        "RHEL/Fedora:   dnf install libicu-devel",
    ],
    "ncurses": [
        "macOS:  brew install ncurses",
        "Debian/Ubuntu: apt install libncurses-dev",
        "RHEL/Fedora:   dnf install ncurses-devel",
    ],
}


def _as_tuple(value):
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def get_dependency_specs(platform, conf=None):
    """
    Returns the DependencySpec records for ``platform``, merged with the
    ``[dependencies.<name>]`` tables of a loaded ``vendorbuild.toml``.

    ``roots``, ``lib_subdirs``, ``markers`` and the ``relocate_*`` keys replace the
    built-in values; ``extra_roots`` is probed before the built-in roots.
    """
    specs = dict(DEFAULT_DEPENDENCY_SPECS.get(platform, DEFAULT_DEPENDENCY_SPECS["linux"]))
    overrides = (conf or {}).get("dependencies", {})

    for name, table in overrides.items():
        if not isinstance(table, dict):
            logger.warning(f"Ignoring [dependencies.{name}]: expected a table.")
            continue
        base = specs.get(name)
        if base is None:
            if not table.get("roots") or not table.get("markers"):
                logger.warning(f"Ignoring [dependencies.{name}]: a new dependency needs 'roots' and 'markers'.")
                continue
            base = DependencySpec(name=name, roots=())

        changes = {}
        for key in ("roots", "lib_subdirs", "markers", "relocate_for", "relocate_patterns"):
            if key in table:
                changes[key] = _as_tuple(table[key])
        if "include_subdir" in table:
            changes["include_subdir"] = str(table["include_subdir"])
        if "extra_roots" in table:
            changes["roots"] = _as_tuple(table["extra_roots"]) + changes.get("roots", base.roots)
        specs[name] = replace(base, **changes)

    return specs
