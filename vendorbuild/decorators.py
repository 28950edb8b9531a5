import functools
import click
import sys
from .cli_logger import logger

def handle_exceptions(func):
    """Logs errors of auxiliary commands instead of dumping a bare traceback."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.Abort:
            logger.warning("\nCommand aborted by user.")
        except FileNotFoundError as e:
            logger.error(f"Error: File not found - {e}")
            logger.exception(*sys.exc_info())
        except click.ClickException:
            raise
        except OSError as e:
            logger.error(f"Filesystem error: {e}")
            logger.exception(*sys.exc_info())
        except Exception as e:
            logger.error(f"\nAn unexpected error occurred: {e}")
            logger.exception(*sys.exc_info())
    return wrapper
