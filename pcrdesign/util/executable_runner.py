"""
# Running command-line tools

[`ExecutableRunner`][pcrdesign.util.executable_runner.ExecutableRunner] starts a tool in a
subprocess, streams its standard output line by line, and stops it when the enclosing `with`
block exits.  Primer3 is driven through it, reading its request from a file handed over as
standard input.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from types import TracebackType
from typing import IO
from typing import Iterator
from typing import Optional
from typing import Self


class ExecutableRunner:
    """A tool running in a subprocess, with text-mode pipes.

    The first element of `command` names the tool; it is used in log and error messages.  By
    default standard input, output and error are all pipes.  Pass an open file as `stdin` to have
    the tool read it directly, or `subprocess.STDOUT` as `stderr` to interleave error messages with
    the output.

    Leaving the `with` block terminates the tool if it has not exited yet.
    """

    __slots__ = ("_command", "_subprocess", "_name")
    _command: list[str]
    _subprocess: subprocess.Popen[str]
    _name: str

    def __init__(
        self,
        command: list[str],
        stdin: int | IO[str] = subprocess.PIPE,
        stdout: int = subprocess.PIPE,
        stderr: int = subprocess.PIPE,
    ) -> None:
        if len(command) == 0:
            raise ValueError(f"Invocation must not be empty, received {command}")
        self._command = command
        self._name = command[0]
        self._subprocess = subprocess.Popen(
            command,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            text=True,
        )

    def __enter__(self) -> Self:
        logging.debug(f"Running {self._name}: {self._command}")
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    @classmethod
    def validate_executable_path(cls, executable: str | Path) -> Path:
        """Resolves an executable to a path that exists and may be run.

        A bare command name given as a string (e.g. `"primer3_core"`) that is not a file in the
        working directory is looked up on the `PATH`.  A `Path` is never looked up.

        Args:
            executable: a path to the executable, or the name of a command on the `PATH`

        Returns:
            the path to the executable

        Raises:
            ValueError: if the executable cannot be found, or is found but lacks execute
                permission
        """
        if isinstance(executable, str):
            name = executable
            executable = Path(name)
            if not executable.exists() and executable.name == name:
                found = shutil.which(name, mode=os.F_OK)
                if found is not None:
                    executable = Path(found)

        if not executable.exists():
            raise ValueError(f"Executable does not exist: {executable}")
        if not os.access(executable, os.X_OK):
            raise ValueError(f"`{executable}` is not executable: {executable}")

        return executable

    @property
    def is_alive(self) -> bool:
        """True until the tool exits."""
        return self._subprocess.poll() is None

    def output_lines(self) -> Iterator[str]:
        """
        Yields each line the tool writes to standard output, with the line ending removed, until
        the tool closes it.

        Raises:
            RuntimeError: if standard output is not a pipe
        """
        if self._subprocess.stdout is None:
            raise RuntimeError(f"The standard output of {self._name} was not captured")
        for line in self._subprocess.stdout:
            yield line.rstrip("\r\n")

    def wait(self) -> int:
        """Waits for the tool to exit and returns its exit status."""
        return self._subprocess.wait()

    def close(self) -> bool:
        """Terminates the tool if it is still running.

        Returns:
            True if the tool was running and has been stopped, False if it had already exited or
            did not stop
        """
        if not self.is_alive:
            logging.debug(f"{self._name} has already exited.")
            return False
        self._subprocess.terminate()
        self._subprocess.wait(timeout=10)
        stopped = not self.is_alive
        logging.debug(f"{self._name} {'terminated' if stopped else 'did not terminate'}.")
        return stopped
