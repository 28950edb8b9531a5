import click
import os
from colorama import Fore, Style
from ..cli_logger import get_latest_log_file
from ..decorators import handle_exceptions
from ..models import STAGE_LOG_NAMES, Stage
from ..reporter import LOGS_DIRNAME

STAGE_CHOICES = {stage.value.lower(): stage for stage in STAGE_LOG_NAMES}
# The compile log keeps its traditional name.
STAGE_CHOICES["make"] = Stage.COMPILE


def _print_session_log(log_file):
    click.echo(f"Displaying log file: {log_file}")
    with open(log_file, 'r') as f:
        for line in f:
            color = Fore.CYAN
            if "[WARNING]" in line:
                color = Fore.YELLOW
            elif "[ERROR]" in line or "[TRACEBACK]" in line:
                color = Fore.RED
            elif "[DEBUG]" in line or "[TAIL]" in line:
                color = Fore.WHITE + Style.DIM
            elif "[SUCCESS]" in line:
                color = Fore.GREEN
            click.echo(f"{color}{line.rstrip()}{Style.RESET_ALL}")


def _print_stage_log(log_file):
    click.echo(f"{Style.BRIGHT}==> {log_file}{Style.RESET_ALL}")
    with open(log_file, 'r', errors="replace") as f:
        for line in f:
            click.echo(line.rstrip("\n"))


def _job_logs(logs_root):
    """Maps each job log directory to the stage logs it holds."""
    jobs = {}
    for entry in sorted(os.listdir(logs_root)):
        job_dir = os.path.join(logs_root, entry)
        if not os.path.isdir(job_dir):
            continue
        jobs[entry] = [name for name in STAGE_LOG_NAMES.values() if os.path.isfile(os.path.join(job_dir, name))]
    return jobs


@click.command()
@click.argument("source_dir", default=".", type=click.Path(file_okay=False))
@click.option("--version", "job_version", default=None, help="Job whose stage logs to show (e.g. 16.2).")
@click.option("--stage", type=click.Choice(sorted(STAGE_CHOICES)), default=None,
              help="Only show this stage's log.")
@click.option("--list", "list_logs", is_flag=True, help="List the job logs of SOURCE_DIR.")
@handle_exceptions
def log(source_dir, job_version, stage, list_logs):
    """Show build logs.

    With --version, prints that job's stage logs from SOURCE_DIR/logs. With
    --list, lists the available job logs. Otherwise prints the latest
    vendorbuild session log.
    """
    logs_root = os.path.join(source_dir, LOGS_DIRNAME)

    if list_logs:
        if not os.path.isdir(logs_root):
            click.echo(f"No logs directory at {logs_root}.")
            return
        jobs = _job_logs(logs_root)
        if not jobs:
            click.echo("No job logs found.")
            return
        click.echo("Available job logs:")
        for job, stages in jobs.items():
            click.echo(f"  {job}: {', '.join(stages) if stages else '(empty)'}")
        return

    if job_version:
        job_dir = os.path.join(logs_root, job_version)
        if not os.path.isdir(job_dir):
            click.echo(f"No logs for {job_version} in {logs_root}.", err=True)
            return
        names = [STAGE_CHOICES[stage].log_name] if stage else list(STAGE_LOG_NAMES.values())
        shown = 0
        for name in names:
            log_file = os.path.join(job_dir, name)
            if os.path.isfile(log_file):
                _print_stage_log(log_file)
                shown += 1
        if not shown:
            click.echo(f"No {stage or 'stage'} log for {job_version}.", err=True)
        return

    log_file = get_latest_log_file()
    if not log_file or not os.path.exists(log_file):
        click.echo("No log files found.")
        return
    _print_session_log(log_file)
