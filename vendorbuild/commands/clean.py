import click
import fnmatch
import os
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..errors import VersionParseError
from ..reporter import LOGS_DIRNAME, discover_archives
from ..utils.file_manager import remove_tree
from ..utils.version_parser import parse_archive_name


def _tree_patterns(source_dir):
    """Directory name patterns of the trees the archives in source_dir unpack into."""
    patterns = [".staging-*"]
    for archive in discover_archives(source_dir):
        try:
            name, _, major = parse_archive_name(archive)
        except VersionParseError:
            continue
        patterns.append(f"{name}-{major}*")
    return patterns


def _remove(path):
    logger.info(f"Attempting to remove directory {path}...")
    try:
        remove_tree(path)
        logger.success(f"Removed directory {path}")
        return True
    except OSError as e:
        logger.error(f"Error removing directory {path}: {e}")
        logger.info("Please check file permissions and ensure the directory is not in use.")
        return False


@click.command()
@click.argument("source_dir", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--work-dir", default=None, help="Extraction directory used by the build (default: from config, else SOURCE_DIR/build).")
@click.option("--logs", "remove_logs", is_flag=True, help="Also remove SOURCE_DIR/logs.")
@handle_exceptions
def clean(source_dir, work_dir, remove_logs):
    """Remove extracted source trees left by earlier builds. Archives are kept."""
    conf = config_module.load_config(path=source_dir)
    try:
        work_dir = config_module.build_settings(conf, work_dir=work_dir)["work_dir"]
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return
    if not os.path.isabs(work_dir):
        work_dir = os.path.join(source_dir, work_dir)

    logger.info(f"Cleaning extracted trees in {work_dir}...")
    items_removed = 0

    if os.path.isdir(work_dir):
        patterns = _tree_patterns(source_dir)
        for entry in sorted(os.listdir(work_dir)):
            path = os.path.join(work_dir, entry)
            if not os.path.isdir(path) or os.path.islink(path):
                continue
            if any(fnmatch.fnmatch(entry, pattern) for pattern in patterns):
                items_removed += _remove(path)
        try:
            if not os.listdir(work_dir) and os.path.abspath(work_dir) != os.path.abspath(source_dir):
                os.rmdir(work_dir)
        except OSError as e:
            logger.warning(f"Could not remove {work_dir}: {e}")

    logs_root = os.path.join(source_dir, LOGS_DIRNAME)
    if remove_logs and os.path.isdir(logs_root):
        items_removed += _remove(logs_root)

    if items_removed > 0:
        logger.success(f"Cleaning complete. Removed {items_removed} items.")
    else:
        logger.info("Nothing to clean.")
