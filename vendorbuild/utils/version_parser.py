import os
import re

from ..errors import VersionParseError

ARCHIVE_EXTENSIONS = (".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".zip")

# <pkg>-X.Y[.Z] followed by an optional non-numeric tail such as "rc1" or "-beta".
ARCHIVE_NAME_RE = re.compile(
    r"^(?P<name>[A-Za-z][A-Za-z0-9_+]*(?:-[A-Za-z][A-Za-z0-9_+]*)*)"
    r"-(?P<version>\d+\.\d+(?:\.\d+)?)"
    r"(?P<suffix>(?:[-_.]?[A-Za-z][A-Za-z0-9_.-]*)?)$"
)


def is_archive(filename):
    return filename.lower().endswith(ARCHIVE_EXTENSIONS)


def strip_archive_extension(filename):
    lowered = filename.lower()
    for ext in ARCHIVE_EXTENSIONS:
        if lowered.endswith(ext):
            return filename[:-len(ext)]
    return filename


def parse_archive_name(archive):
    """
    Splits an archive file name into (package name, version, major).

    ``postgresql-16.2.tar.gz`` gives ``("postgresql", "16.2", 16)`` and
    ``mongo-tools-100.9.4.tgz`` gives ``("mongo-tools", "100.9.4", 100)``.

    Raises:
        VersionParseError: the name has no ``<pkg>-X.Y[.Z]`` form.
    """
    filename = os.path.basename(archive)
    if not is_archive(filename):
        raise VersionParseError(filename, f"'{filename}' is not a supported archive type")

    match = ARCHIVE_NAME_RE.match(strip_archive_extension(filename))
    if not match:
        raise VersionParseError(filename)

    version = match.group("version")
    return match.group("name"), version, int(version.split(".")[0])
