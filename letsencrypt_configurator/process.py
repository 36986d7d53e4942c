"""External process execution: plain exit-status runs and marker-watched runs."""

# ----------------------------------------------------------------
# Dependencies and Imports
# ----------------------------------------------------------------
import asyncio
import logging
import subprocess
from typing import List, Optional, Sequence

from letsencrypt_configurator.config import OPERATION_TIMEOUT, STREAM_LINE_LIMIT
from letsencrypt_configurator.errors import MarkerTimeout, ProcessStartError
from letsencrypt_configurator.logger import get_logger


# ----------------------------------------------------------------
# Command Execution Utilities
# ----------------------------------------------------------------
class ProcessRunner:
    """Runs external tools and reduces their outcome to a boolean."""

    def __init__(
        self,
        timeout: Optional[float] = OPERATION_TIMEOUT,
        logger: Optional[logging.Logger] = None,
        line_limit: int = STREAM_LINE_LIMIT,
    ):
        self.timeout = timeout
        self.line_limit = line_limit
        self.logger = logger or get_logger()

    def execute(self, command: str, args: Sequence[str] = ()) -> bool:
        """Run a command attached to the terminal and report whether it exited 0."""
        cmd: List[str] = [command, *args]
        self.logger.debug(f"Running command: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd)
        except OSError as e:
            raise ProcessStartError(f"Unable to start {command}: {e}") from e

        self.logger.debug(f"{command} exited with status {result.returncode}")
        return result.returncode == 0

    def execute_watching(
        self,
        command: str,
        args: Sequence[str],
        success_marker: str,
        fail_marker: str,
    ) -> bool:
        """Blocking wrapper around execute_watching_async."""
        return asyncio.run(
            self.execute_watching_async(command, args, success_marker, fail_marker)
        )

    async def execute_watching_async(
        self,
        command: str,
        args: Sequence[str],
        success_marker: str,
        fail_marker: str,
    ) -> bool:
        """
        Run a command with stdout and stderr captured line by line.

        The first line on either stream containing a marker settles the verdict.
        Raises MarkerTimeout if the process exits without a marker, or if the
        timeout passes first (the process is killed in that case).
        """
        cmd: List[str] = [command, *args]
        self.logger.debug(f"Running watched command: {' '.join(cmd)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.line_limit,
            )
        except OSError as e:
            raise ProcessStartError(f"Unable to start {command}: {e}") from e

        verdict: asyncio.Future = asyncio.get_running_loop().create_future()

        async def watch(stream: asyncio.StreamReader) -> None:
            # Keep draining after the verdict so the child never blocks on a full pipe
            while True:
                try:
                    raw = await stream.readline()
                except ValueError:
                    self.logger.warning(
                        f"[{command}] skipped an output line longer than {self.line_limit} bytes"
                    )
                    continue
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace").rstrip()
                if not line.strip():
                    continue
                self.logger.debug(f"[{command}] {line}")
                if verdict.done():
                    continue
                if success_marker in line:
                    verdict.set_result(True)
                elif fail_marker in line:
                    verdict.set_result(False)

        # The deadline covers the exit as well as both streams
        watched = asyncio.gather(watch(proc.stdout), watch(proc.stderr), proc.wait())
        try:
            await asyncio.wait_for(watched, timeout=self.timeout)
        except asyncio.TimeoutError:
            self.logger.error(
                f"Command timed out after {self.timeout} seconds: {' '.join(cmd)}"
            )
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            if verdict.done():
                return verdict.result()
            raise MarkerTimeout(
                f"{command} reported neither success nor failure within {self.timeout} seconds"
            )

        self.logger.debug(f"{command} exited with status {proc.returncode}")
        if not verdict.done():
            raise MarkerTimeout(
                f"{command} exited with status {proc.returncode} without reporting success or failure"
            )
        return verdict.result()
