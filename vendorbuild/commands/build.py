import click
import os
import sys
from .. import config as config_module
from .. import reporter
from ..cli_logger import logger
from ..dependencies import get_dependency_specs
from ..errors import FatalRunError
from ..recipes import get_recipes
from ..utils import host

@click.command()
@click.pass_context
@click.argument("source_dir", default=".", type=click.Path())
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None,
              help="Parallel compile jobs (default: one per logical core).")
@click.option("--work-dir", default=None, help="Where archives are extracted (default: SOURCE_DIR/build).")
@click.option("--tail-lines", type=click.IntRange(min=0), default=None,
              help="Log lines shown when a stage fails.")
@click.option("--require", multiple=True, metavar="NAME",
              help="Fail instead of building without this dependency. Repeatable.")
@click.option("--verbose", "-v", is_flag=True, help="Show extraction progress.")
def build(ctx, source_dir, jobs, work_dir, tail_lines, require, verbose):
    """Build every vendor archive found in SOURCE_DIR.

    SOURCE_DIR: directory holding <pkg>-X.Y[.Z] archives (default: current directory).
    """
    conf = {}
    if os.path.isdir(source_dir):
        conf = config_module.load_config(path=source_dir)

    try:
        settings = config_module.build_settings(
            conf, jobs=jobs, work_dir=work_dir, tail_lines=tail_lines, require=require
        )
        platform = host.platform_key()
        recipes = get_recipes(conf)
        specs = get_dependency_specs(platform, conf)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        ctx.exit(1)

    unknown = [name for name in settings["require"] if name not in specs]
    if unknown:
        logger.error(f"Unknown dependency in --require: {', '.join(unknown)}")
        logger.info(f"Known dependencies: {', '.join(sorted(specs))}")
        ctx.exit(1)

    try:
        report = reporter.run_build(
            source_dir,
            settings=settings,
            platform=platform,
            recipes=recipes,
            dependency_specs=specs,
            show_progress=verbose,
        )
    except FatalRunError as e:
        logger.error(str(e))
        ctx.exit(1)
    except Exception as e:
        logger.error(f"An unexpected error occurred during the build run: {e}")
        logger.info("Please check the log file for more details and report this issue to the vendorbuild developers if it persists.")
        logger.exception(*sys.exc_info())
        ctx.exit(1)

    reporter.print_summary(report)
    ctx.exit(report.exit_code)
