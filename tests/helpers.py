import os
import stat
import tarfile
import tempfile
import zipfile

OK_CONFIGURE = """#!/bin/sh
echo "configure called with: $@"
echo "checking for a BSD-compatible install... /usr/bin/install -c"
exit 0
"""

FAILING_CONFIGURE = """#!/bin/sh
i=1
while [ $i -le 40 ]; do
  echo "checking for feature $i... no"
  i=$((i + 1))
done
echo "configure: error: required header not found"
exit 1
"""

# Stands in for make: records its arguments, fails when the tree asks it to.
FAKE_MAKE = """#!/bin/sh
echo "make $@"
if [ -f FAIL_COMPILE ] && [ "$1" != "install" ]; then
  echo "cc: error: something broke"
  exit 2
fi
if [ "$1" = "install" ]; then
  mkdir -p dist/bin && echo built > dist/bin/tool
fi
exit 0
"""


def write_executable(path, content):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write(content)
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def make_tarball(archive_path, files, top_dir=None):
    """Writes ``{relative path: content}`` into a .tar.gz. Contents starting with ``#!`` are made executable."""
    with tempfile.TemporaryDirectory() as scratch:
        for relative, content in files.items():
            path = os.path.join(scratch, relative)
            if content.startswith("#!"):
                write_executable(path, content)
            else:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "w") as f:
                    f.write(content)
        with tarfile.open(archive_path, "w:gz") as tar:
            for entry in sorted(os.listdir(scratch)):
                tar.add(os.path.join(scratch, entry), arcname=entry)
    return archive_path


def make_zip(archive_path, files):
    with zipfile.ZipFile(archive_path, "w") as zf:
        for relative, content in files.items():
            info = zipfile.ZipInfo(relative)
            info.external_attr = (0o755 if content.startswith("#!") else 0o644) << 16
            zf.writestr(info, content)
    return archive_path


def autotools_package(archive_dir, name, version, configure=OK_CONFIGURE, inner_dir=None, extra=None):
    """A tarball whose tree has an executable ./configure and a Makefile."""
    inner = inner_dir or f"{name}-{version}"
    files = {
        f"{inner}/configure": configure,
        f"{inner}/Makefile": "all:\n\ttrue\n",
    }
    files.update({f"{inner}/{k}": v for k, v in (extra or {}).items()})
    return make_tarball(os.path.join(archive_dir, f"{name}-{version}.tar.gz"), files)


def fake_tool_dir(parent):
    """A bin directory holding the fake make; prepend it to PATH."""
    bin_dir = os.path.join(parent, "fakebin")
    write_executable(os.path.join(bin_dir, "make"), FAKE_MAKE)
    return bin_dir


def env_with_path(bin_dir, base=None):
    env = dict(base if base is not None else os.environ)
    env["PATH"] = bin_dir + os.pathsep + env.get("PATH", "")
    return env
