"""
cli_executor.py

Thin wrapper for running external toolchain binaries (nargo, bb, sunspot).

Commands run through subprocess.Popen with captured text output and a
timeout. A missing binary, a timeout or a non-zero exit status raises
CliError carrying the command, exit code and stderr.
"""

from dataclasses import dataclass
import logging
import shutil
import subprocess
from typing import List, Optional, Sequence

from errors import CliError

DEFAULT_TIMEOUT_S = 120


@dataclass(frozen=True)
class CliResult:
    command: List[str]
    stdout: str
    stderr: str
    exit_code: int


class CliExecutor:
    """
    Run a binary with arguments in a working directory.

    Typical usage:
        ex = CliExecutor(timeout_s=60)
        ex.run("nargo", ["compile"], cwd=project_dir)
    """

    def __init__(self, timeout_s: float = DEFAULT_TIMEOUT_S, logger: Optional[logging.Logger] = None):
        self.timeout_s = timeout_s
        self.log = logger or logging.getLogger(__name__)

    @staticmethod
    def available(binary: str) -> bool:
        return shutil.which(binary) is not None

    def run(self, binary: str, args: Sequence[str], cwd: Optional[str] = None) -> CliResult:
        command = [binary] + [str(a) for a in args]
        self.log.debug("exec: %s (cwd=%s)", " ".join(command), cwd)
        try:
            proc = subprocess.Popen(command, cwd=cwd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        except FileNotFoundError as exc:
            raise CliError(f"Binary not found: {binary}. Ensure it is installed and in PATH.",
                           command=command) from exc
        try:
            out, err = proc.communicate(timeout=self.timeout_s)
        except subprocess.TimeoutExpired as exc:
            proc.kill()
            proc.communicate()
            raise CliError(f"Command timed out after {self.timeout_s}s: {' '.join(command)}",
                           command=command) from exc
        if proc.returncode != 0:
            detail = (err or out or "").strip()
            raise CliError(f"Command failed with exit code {proc.returncode}: {' '.join(command)}\n{detail}",
                           command=command, exit_code=proc.returncode, stderr=err or "")
        return CliResult(command=command, stdout=out or "", stderr=err or "", exit_code=proc.returncode)
