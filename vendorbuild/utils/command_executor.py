import collections
import shlex
import subprocess
from ..cli_logger import logger


def format_command(command):
    if isinstance(command, str):
        return command
    return " ".join(shlex.quote(str(part)) for part in command)


def run_shell_command(command, env=None, input_data=None, cwd=None):
    """
    Executes a short-lived helper command and captures its output.

    Used for probes such as ``pkg-config`` or ``brew --prefix`` whose output
    is parsed rather than logged.

    Args:
        command (list): The command to execute as a list of strings.
        env (dict, optional): A dictionary of environment variables.
        input_data (str, optional): Data to be passed to the command's stdin.
        cwd (str, optional): The working directory for the command.

    Returns:
        A tuple (stdout, stderr, return_code). A command that cannot be
        started yields return code -1.
    """
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            env=env,
            input=input_data,
            check=False,
            cwd=cwd
        )
        return result.stdout, result.stderr, result.returncode

    except FileNotFoundError as e:
        logger.debug(f"Command not found: {e.filename}")
        return "", str(e), -1
    except OSError as e:
        logger.error(f"Could not run {format_command(command)}: {e}")
        return "", str(e), -1


def run_logged_command(command, log_file, env=None, cwd=None, tail_lines=20, append=False):
    """
    Runs a build tool, streaming its combined stdout/stderr into ``log_file``.

    The full output always lands in the log file, whatever the exit status.
    Only the last ``tail_lines`` lines are kept in memory so they can be shown
    at the point of failure.

    Returns:
        A tuple (return_code, tail) where tail is a list of output lines.
    """
    tail = collections.deque(maxlen=max(tail_lines, 1))
    mode = "a" if append else "w"
    with open(log_file, mode, encoding="utf-8", errors="replace") as log:
        log.write(f"$ {format_command(command)}\n")
        if cwd:
            log.write(f"# cwd: {cwd}\n")
        log.flush()
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=1,
                universal_newlines=True,
                errors="replace",
                env=env,
                cwd=cwd
            )
        except OSError as e:
            message = f"Could not start {format_command(command)}: {e}"
            log.write(message + "\n")
            return -1, [message]

        with process.stdout:
            for line in process.stdout:
                log.write(line)
                tail.append(line.rstrip("\n"))
        returncode = process.wait()
        log.write(f"# exit status: {returncode}\n")

    if tail_lines <= 0:
        return returncode, []
    return returncode, list(tail)
