"""Thin wrapper around external tool invocation. Every decoder, image and push script goes through here."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from meteor_rx.base.errors import ToolError

logger = logging.getLogger(__name__)

# Exit code reported when the executable itself cannot be started
NOT_FOUND_EXIT_CODE = 127


@dataclass(frozen=True)
class ToolResult:
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ToolRunner:
    """Run external commands to completion.

    `policy` decides what a non-zero exit means when the caller does not say:
        * best_effort: log a warning and carry on, callers detect missing output downstream.
        * strict: raise `ToolError`.
    """

    def __init__(self, policy: str = "best_effort"):
        self.policy = policy

    async def run(
        self, cmd: list[Union[str, Path]], cwd: Optional[Path] = None, check: Optional[bool] = None
    ) -> ToolResult:
        cmd = [str(c) for c in cmd]
        if check is None:
            check = self.policy == "strict"
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd) if cwd is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            stdout, _ = await process.communicate()
            result = ToolResult(process.returncode, stdout.decode("utf-8", errors="replace"))
        except OSError as e:
            result = ToolResult(NOT_FOUND_EXIT_CODE, str(e))

        if result.output:
            logger.debug(f"{cmd[0]} output:\n{result.output.rstrip()}")
        if not result.ok:
            if check:
                raise ToolError(cmd, result.returncode, result.output)
            logger.warning(f"{cmd[0]} exited with code {result.returncode}")
        return result
