import os
import sys
import tempfile
import unittest
from unittest.mock import patch, MagicMock

from vendorbuild.utils.command_executor import format_command, run_logged_command, run_shell_command


class TestRunShellCommand(unittest.TestCase):

    @patch('subprocess.run')
    def test_returns_output_and_code(self, mock_run):
        mock_run.return_value = MagicMock(stdout="/opt/homebrew/opt/openssl\n", stderr="", returncode=0)

        stdout, stderr, code = run_shell_command(["brew", "--prefix", "openssl"], env={"PATH": "/bin"})

        self.assertEqual((stdout, stderr, code), ("/opt/homebrew/opt/openssl\n", "", 0))
        self.assertEqual(mock_run.call_args.kwargs["env"], {"PATH": "/bin"})

    def test_missing_executable(self):
        _, stderr, code = run_shell_command(["vendorbuild-no-such-tool-xyz"])
        self.assertEqual(code, -1)
        self.assertTrue(stderr)


class TestRunLoggedCommand(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.log_file = os.path.join(self._tmp.name, "make.log")

    def tearDown(self):
        self._tmp.cleanup()

    def _read_log(self):
        with open(self.log_file) as f:
            return f.read()

    def test_full_output_logged_and_tail_kept(self):
        script = "for i in 1 2 3 4 5; do echo line $i; done; echo oops >&2; exit 3"

        code, tail = run_logged_command(["sh", "-c", script], self.log_file, tail_lines=2)

        self.assertEqual(code, 3)
        self.assertEqual(tail, ["line 5", "oops"])
        log = self._read_log()
        for i in range(1, 6):
            self.assertIn(f"line {i}\n", log)
        self.assertIn("oops\n", log)
        self.assertIn("# exit status: 3", log)
        self.assertTrue(log.startswith("$ sh -c "))

    def test_success_still_logs_everything(self):
        code, tail = run_logged_command([sys.executable, "-c", "print('hello')"], self.log_file)

        self.assertEqual(code, 0)
        self.assertEqual(tail, ["hello"])
        self.assertIn("hello\n", self._read_log())

    def test_env_and_cwd_are_passed(self):
        cwd = self._tmp.name
        code, tail = run_logged_command(
            ["sh", "-c", "echo $VENDORBUILD_PROBE; pwd"],
            self.log_file,
            env={"VENDORBUILD_PROBE": "from-env", "PATH": os.environ.get("PATH", "")},
            cwd=cwd,
        )

        self.assertEqual(code, 0)
        self.assertEqual(tail[0], "from-env")
        self.assertEqual(os.path.realpath(tail[1]), os.path.realpath(cwd))
        self.assertIn(f"# cwd: {cwd}", self._read_log())

    def test_unstartable_command(self):
        code, tail = run_logged_command(["vendorbuild-no-such-tool-xyz"], self.log_file)

        self.assertEqual(code, -1)
        self.assertIn("Could not start", tail[0])
        self.assertIn("Could not start", self._read_log())

    def test_zero_tail_lines(self):
        code, tail = run_logged_command(["sh", "-c", "echo a"], self.log_file, tail_lines=0)
        self.assertEqual((code, tail), (0, []))


class TestFormatCommand(unittest.TestCase):

    def test_quotes_arguments(self):
        self.assertEqual(format_command(["cmake", "-DX=a b"]), "cmake '-DX=a b'")
        self.assertEqual(format_command("make install"), "make install")


if __name__ == '__main__':
    unittest.main()
