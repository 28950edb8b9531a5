import fnmatch
import os
import shutil
import tarfile
import zipfile
from ..cli_logger import logger
from ..errors import ExtractionError, LayoutError

# -------------------- Helpers: safe paths & extraction --------------------

def _safe_join(base, *paths):
    """Safely join paths, preventing path traversal attacks."""
    base = os.path.abspath(base)
    final = os.path.abspath(os.path.join(base, *paths))
    if not final.startswith(base + os.sep) and final != base:
        raise ExtractionError(f"Unsafe path in archive: {os.path.join(*paths)}")
    return final

def _members(members, description, show_progress):
    if show_progress:
        return logger.progress(members, description=description, unit="it")
    return members

def _safe_extract_zip(zip_ref: zipfile.ZipFile, dest_dir: str, show_progress=False):
    """Safely extract a zip file, preventing zip slip attacks."""
    for member in _members(zip_ref.infolist(), "Unpacking zip entries", show_progress):
        # protect against zip slip
        target_path = _safe_join(dest_dir, member.filename)
        if member.is_dir():
            os.makedirs(target_path, exist_ok=True)
            continue
        os.makedirs(os.path.dirname(target_path), exist_ok=True)
        with zip_ref.open(member, 'r') as src, open(target_path, 'wb') as out:
            shutil.copyfileobj(src, out)
        # Preserve file permissions
        mode = member.external_attr >> 16
        if mode & 0o777:
            os.chmod(target_path, mode & 0o777)

def _safe_extract_tar(tar_ref: tarfile.TarFile, dest_dir: str, show_progress=False):
    """Safely extract a tar file, preventing path traversal attacks."""
    links = []
    for member in _members(tar_ref.getmembers(), "Unpacking tar entries", show_progress):
        # deny absolute or parent traversal
        member_path = _safe_join(dest_dir, member.name)
        if member.isdir():
            os.makedirs(member_path, exist_ok=True)
            continue
        os.makedirs(os.path.dirname(member_path), exist_ok=True)
        if member.issym() or member.islnk():
            links.append((member, member_path))
            continue
        src = tar_ref.extractfile(member)
        if src is None:
            # device nodes, fifos: never part of a source tree
            continue
        with src as src_file:
            with open(member_path, "wb") as out:
                shutil.copyfileobj(src_file, out)
        if member.mode:
            os.chmod(member_path, member.mode & 0o777)

    # Links last, so hard link targets already exist.
    for member, member_path in links:
        if member.issym():
            _safe_join(os.path.dirname(member_path), member.linkname)
            if os.path.lexists(member_path):
                os.remove(member_path)
            os.symlink(member.linkname, member_path)
        else:
            shutil.copy2(_safe_join(dest_dir, member.linkname), member_path)


def extract(filepath, dest_dir, show_progress=False):
    """
    Extracts an archive file into ``dest_dir``.

    The archive itself is left in place so a later run can extract it again.

    Raises:
        ExtractionError: the archive is unreadable, truncated or unsafe.
    """
    os.makedirs(dest_dir, exist_ok=True)
    filename = os.path.basename(filepath)

    try:
        if zipfile.is_zipfile(filepath):
            with zipfile.ZipFile(filepath, 'r') as zip_ref:
                _safe_extract_zip(zip_ref, dest_dir, show_progress)
        elif tarfile.is_tarfile(filepath):
            with tarfile.open(filepath, 'r:*') as tar:
                _safe_extract_tar(tar, dest_dir, show_progress)
        else:
            raise ExtractionError(f"Unsupported or corrupt archive: {filename}")
    except (zipfile.BadZipFile, tarfile.TarError, EOFError, OSError) as e:
        raise ExtractionError(f"Error extracting {filename}: {e}") from e

    return dest_dir


def find_source_tree(search_dir, name, version, major):
    """
    Locates the directory an archive unpacked into.

    Tried in order: the literal ``<name>-<version>``, then the most recently
    modified ``<name>-<major>*`` directory (tarballs whose inner directory
    does not match the file name), then a lone top-level directory.

    Raises:
        LayoutError: none of the above exists.
    """
    expected = os.path.join(search_dir, f"{name}-{version}")
    if os.path.isdir(expected):
        return expected

    directories = [
        os.path.join(search_dir, entry)
        for entry in os.listdir(search_dir)
        if os.path.isdir(os.path.join(search_dir, entry))
    ]
    candidates = [d for d in directories if fnmatch.fnmatch(os.path.basename(d), f"{name}-{major}*")]
    if candidates:
        found = max(candidates, key=os.path.getmtime)
        logger.warning(f"Expected {os.path.basename(expected)}, using {os.path.basename(found)} instead.")
        return found

    if len(directories) == 1:
        logger.warning(f"Expected {os.path.basename(expected)}, using lone directory {os.path.basename(directories[0])}.")
        return directories[0]

    raise LayoutError(f"Could not find extracted directory for {name}-{version} in {search_dir}")


def remove_tree(path):
    if os.path.islink(path) or os.path.isfile(path):
        os.remove(path)
    elif os.path.isdir(path):
        shutil.rmtree(path)


def stage_archive(job, work_dir, show_progress=False):
    """
    Extracts ``job.archive`` and moves its source tree to ``job.extract_dir``.

    Extraction happens in a fresh staging directory; the resulting tree then
    replaces whatever a previous run left at ``job.extract_dir``, so a re-run
    never builds a mix of old and new files.

    Returns:
        The absolute path of the source tree.
    """
    staging_dir = os.path.join(work_dir, f".staging-{job.name}-{job.version}")
    target = job.extract_dir

    try:
        os.makedirs(work_dir, exist_ok=True)
        remove_tree(staging_dir)
        logger.info(f"Extracting {job.archive_name}...")
        extract(job.archive, staging_dir, show_progress=show_progress)
        tree = find_source_tree(staging_dir, job.name, job.version, job.major)

        if os.path.lexists(target):
            logger.info(f"  - Replacing previous tree {target}")
            remove_tree(target)
        shutil.move(tree, target)
    except OSError as e:
        raise ExtractionError(f"Error staging {job.archive_name}: {e}") from e
    finally:
        try:
            remove_tree(staging_dir)
        except OSError as e:
            logger.warning(f"Could not remove staging directory {staging_dir}: {e}")

    logger.success(f"Extracted -> {target}")
    return target
