import click
import os
import shutil
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..dependencies import get_dependency_specs
from ..recipes import get_recipes
from ..utils import host
from ..utils.configure_resolver import REQUIRED_TOOLS
from ..utils.dependency_locator import locate_all


def _probe_tools(recipes):
    """Returns {tool: path or None} for every tool a build may need."""
    tools = []
    for build_system_tools in REQUIRED_TOOLS.values():
        tools.extend(build_system_tools)
    for recipe in recipes.values():
        tools.extend(recipe.required_tools)
        tools.extend(recipe.optional_tools)
    return {tool: shutil.which(tool) for tool in dict.fromkeys(tools)}


@click.command()
@click.argument("source_dir", default=".", type=click.Path(file_okay=False))
@handle_exceptions
def deps(source_dir):
    """Show which native dependencies and build tools were found.

    SOURCE_DIR: directory whose vendorbuild.toml is applied (default: current directory).
    """
    conf = config_module.load_config(path=source_dir) if os.path.isdir(source_dir) else {}
    platform = host.platform_key()

    logger.header(f"Dependencies ({platform})")
    specs = get_dependency_specs(platform, conf)
    resolved = locate_all(specs)
    for name, found in resolved.items():
        if found:
            logger.step_info(f"{name}: lib {found.lib_dir}, include {found.include_dir} (via {found.source})", indent=2)

    logger.header("Build tools")
    missing = 0
    for tool, path in _probe_tools(get_recipes(conf)).items():
        if path:
            logger.success(f"{tool}: {path}")
        else:
            logger.warning(f"{tool}: not found")
            missing += 1

    found_count = sum(1 for found in resolved.values() if found)
    logger.info(f"{found_count}/{len(resolved)} dependencies found, {missing} tool(s) missing.")
