import click
import json
import os
import sys
from .. import config as config_module
from ..cli_logger import logger


def _parse_value(value):
    """Turns command-line text into the TOML type it most likely means."""
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(value)
    except ValueError:
        pass
    if "," in value:
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


@click.group()
@click.pass_context
def config(ctx):
    """View or edit the vendorbuild.toml configuration file."""
    pass

@config.command()
@click.pass_context
def view(ctx):
    """View the contents of the vendorbuild.toml file."""
    config_file_path = os.path.join(ctx.obj["path"], config_module.CONFIG_FILE)
    if not os.path.exists(config_file_path):
        logger.error(f"Error: No {config_module.CONFIG_FILE} found in {ctx.obj['path']}.")
        return
    try:
        with open(config_file_path, 'r') as f:
            click.echo(f.read())
    except IOError as e:
        logger.error(f"Error reading {config_file_path}: {e}")
        logger.info("Please check file permissions.")
    except Exception as e:
        logger.error(f"An unexpected error occurred while viewing {config_file_path}: {e}")
        logger.exception(*sys.exc_info())

@config.command(name="list")
@click.pass_context
def list_(ctx):
    """List all configuration keys and values."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(f"Error: No {config_module.CONFIG_FILE} found, or it is empty.")
        return
    click.echo(json.dumps(conf, indent=4))

@config.command()
@click.argument('key')
@click.pass_context
def get(ctx, key):
    """Get a value by dotted key, e.g. build.jobs."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(f"Error: No {config_module.CONFIG_FILE} found, or it is empty.")
        return

    value = conf
    try:
        for k in key.split('.'):
            value = value[k]
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in {config_module.CONFIG_FILE}")
        return
    click.echo(json.dumps(value) if isinstance(value, (dict, list)) else value)

@config.command(name="set")
@click.argument('key')
@click.argument('value')
@click.pass_context
def set_(ctx, key, value):
    """Set a value by dotted key. Creates the file when missing.

    Integers and true/false are stored typed; comma-separated text becomes a list.
    """
    conf = config_module.load_config(path=ctx.obj["path"])

    keys = key.split('.')
    d = conf
    try:
        for k in keys[:-1]:
            d = d.setdefault(k, {})
        d[keys[-1]] = _parse_value(value)
    except (AttributeError, TypeError):
        logger.error(f"Error: '{key}' goes through a value that is not a table.")
        return

    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.info(f"Set '{key}' to '{value}'")

@config.command()
@click.argument('key')
@click.pass_context
def unset(ctx, key):
    """Remove a key from the vendorbuild.toml file."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(f"Error: No {config_module.CONFIG_FILE} found, or it is empty.")
        return

    keys = key.split('.')
    d = conf
    try:
        for k in keys[:-1]:
            d = d[k]
        del d[keys[-1]]
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in {config_module.CONFIG_FILE}")
        return
    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.info(f"Unset '{key}'")
