import toml
import os
from .cli_logger import logger

CONFIG_FILE = "vendorbuild.toml"

DEFAULT_TAIL_LINES = 20
DEFAULT_WORK_DIR = "build"
DEFAULT_INSTALL_PREFIX = "{source_dir}/dist"

def load_config(path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    if os.path.exists(config_path):
        logger.info(f"Loading configuration from {config_path}")
        try:
            with open(config_path, "r") as f:
                return toml.load(f)
        except toml.TomlDecodeError as e:
            logger.error(f"Error decoding TOML file at {config_path}: {e}")
            logger.info("Please check the file's format for syntax errors.")
        except IOError as e:
            logger.error(f"Error reading configuration file at {config_path}: {e}")
            logger.info("Please check file permissions.")
    return {}

def save_config(config, path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    logger.info(f"Saving configuration to {config_path}")
    try:
        with open(config_path, "w") as f:
            toml.dump(config, f)
        return True
    except IOError as e:
        logger.error(f"Error saving configuration to {config_path}: {e}")
        logger.info("Please check file permissions and ensure the directory is writable.")
        return False

def _positive_int(value, key):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"[build] {key} must be an integer, got {value!r}")
    if number < 0:
        raise ValueError(f"[build] {key} must not be negative, got {value!r}")
    return number

def build_settings(conf, jobs=None, work_dir=None, tail_lines=None, require=()):
    """
    Merges command-line values over the ``[build]`` table over the defaults.

    Returns a dict with ``jobs`` (None means one per logical core),
    ``work_dir`` (relative paths are later taken against the source
    directory), ``tail_lines``, ``install_prefix`` and ``require``.
    """
    table = (conf or {}).get("build", {})

    if jobs is None and "jobs" in table:
        jobs = _positive_int(table["jobs"], "jobs") or None
    if tail_lines is None:
        tail_lines = _positive_int(table.get("tail_lines", DEFAULT_TAIL_LINES), "tail_lines")

    configured_require = table.get("require", [])
    if isinstance(configured_require, str):
        configured_require = [configured_require]

    return {
        "jobs": jobs,
        "work_dir": work_dir or table.get("work_dir", DEFAULT_WORK_DIR),
        "tail_lines": tail_lines,
        "install_prefix": table.get("install_prefix", DEFAULT_INSTALL_PREFIX),
        "require": tuple(dict.fromkeys(list(configured_require) + list(require or ()))),
    }
