import click
import importlib.metadata
import sys
from ..cli_logger import logger

@click.command()
def version():
    """Print the version of vendorbuild."""
    try:
        ver = importlib.metadata.version("vendorbuild")
        logger.info(f"vendorbuild version {ver}")
    except importlib.metadata.PackageNotFoundError:
        logger.error("Error: Could not determine the version of vendorbuild. Is it installed correctly?")
    except Exception as e:
        logger.error(f"An unexpected error occurred while determining the vendorbuild version: {e}")
        logger.exception(*sys.exc_info())
