import click
from .commands import *


@click.group()
@click.option("--path", "-p", default=".", help="Directory holding vendorbuild.toml (used by 'config').")
@click.pass_context
def cli(ctx, path):
    """vendorbuild: extract vendor source archives and build them."""
    ctx.obj = {"path": path}

cli.add_command(build)
cli.add_command(deps)
cli.add_command(log)
cli.add_command(clean)
cli.add_command(config)
cli.add_command(version)

if __name__ == '__main__':
    try:
        cli()
    except Exception as e:
        click.echo(f"An unexpected error occurred: {e}", err=True)
        click.echo("Please report this issue to the vendorbuild developers.", err=True)
