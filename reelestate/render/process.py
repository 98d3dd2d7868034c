"""FFmpeg invocation.

Commands are built as argument lists and never passed through a shell.
"""

import logging
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Outcome of one external process run."""

    args: list[str]
    returncode: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, limit: int = 2000) -> str:
        return self.stderr[-limit:]


def run_process(args: list[str], timeout: float | None = None) -> ProcessResult:
    """Run ``args`` to completion and capture the exit code and stderr.

    A missing binary or a timeout is reported as a failed result (exit code
    127 / -1) so callers map every failure through the same path.
    """
    logger.info("Running: %s", " ".join(_redact_args(args)))
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as e:
        return ProcessResult(args=args, returncode=127, stderr=str(e))
    except subprocess.TimeoutExpired:
        return ProcessResult(args=args, returncode=-1, stderr=f"timed out after {timeout}s")

    if result.returncode != 0:
        logger.error("%s failed (rc=%d)", args[0], result.returncode)
        logger.error("stderr (last 2000): %s", (result.stderr or "")[-2000:])
    return ProcessResult(args=args, returncode=result.returncode, stderr=result.stderr or "")


def _redact_args(args: list[str]) -> list[str]:
    return ["<URL>" if arg.startswith("http") else arg for arg in args]
