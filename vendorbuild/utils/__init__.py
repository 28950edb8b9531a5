from ..cli_logger import logger
from .command_executor import run_shell_command, run_logged_command, format_command
from .configure_resolver import resolve_config_type, resolve_feature_args, REQUIRED_TOOLS
from .dependency_locator import locate, locate_all, normalize_layout
from .file_manager import extract, find_source_tree, stage_archive
from .version_parser import parse_archive_name, is_archive
from . import host
from . import rpath_fixer
