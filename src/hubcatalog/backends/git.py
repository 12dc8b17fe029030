"""Git command-line backend.

Implements the VCSBackend capability by shelling out to ``git``. Every
command runs under a timeout; a timed-out process is killed and reported
as a failed GitOperationResult rather than raised. A cancelled caller also
kills the process before the cancellation propagates.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path

from hubcatalog.backends.base import GitOperationResult

logger = logging.getLogger(__name__)

# Never block on credential prompts; private repositories simply fail
_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "echo"}


class GitCLI:
    """VCSBackend that runs the git executable in a subprocess."""

    def __init__(self, executable: str = "git", metadata_timeout: float = 10.0):
        """
        Initialize the backend.

        Args:
            executable: Name or path of the git executable
            metadata_timeout: Timeout in seconds for branch/log lookups
        """
        self.executable = executable
        self.metadata_timeout = metadata_timeout

    async def _run_git(
        self,
        args: list[str],
        cwd: str | Path | None = None,
        timeout: float = 60,
    ) -> GitOperationResult:
        """
        Run a git command.

        Args:
            args: Git command arguments (without 'git' prefix)
            cwd: Working directory
            timeout: Command timeout in seconds

        Returns:
            GitOperationResult with stdout in ``output`` on success
        """
        cmd = [self.executable, *args]
        logger.debug(f"Running: {' '.join(cmd)} in {cwd or os.getcwd()}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **_GIT_ENV},
            )
        except FileNotFoundError:
            return GitOperationResult(
                success=False,
                message=f"Git executable not found: {self.executable}",
                error="git not found",
            )
        except OSError as e:
            return GitOperationResult(
                success=False,
                message=f"Error starting git: {e}",
                error=str(e),
            )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.CancelledError:
            logger.debug(f"Git command cancelled, killing: {' '.join(cmd)}")
            await self._kill(process)
            raise
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.error(f"Git command timed out after {timeout}s: {' '.join(cmd)}")
            return GitOperationResult(
                success=False,
                message=f"Git {args[0]} timed out after {timeout:g} seconds",
                error="timeout",
            )

        out = stdout.decode(errors="replace").strip()
        err = stderr.decode(errors="replace").strip()
        if process.returncode != 0:
            return GitOperationResult(
                success=False,
                message=f"Git {args[0]} failed: {err or out}",
                output=out,
                error=err or out,
            )
        return GitOperationResult(success=True, message=f"Git {args[0]} succeeded", output=out)

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        """Kill a child process and reap it."""
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()

    async def clone(self, url: str, target_dir: Path, timeout: float) -> GitOperationResult:
        """
        Clone a repository.

        A partially written target directory is removed when the clone fails
        or is cancelled.

        Args:
            url: Remote repository URL (HTTPS, SSH or git protocol)
            target_dir: Directory to clone into (must not exist)
            timeout: Timeout in seconds

        Returns:
            GitOperationResult with success status and message
        """
        target_dir = Path(target_dir)
        try:
            target_dir.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return GitOperationResult(
                success=False,
                message=f"Cannot create clone directory {target_dir.parent}: {e}",
                error=str(e),
            )

        # "--" keeps a URL starting with "-" from being read as an option
        try:
            result = await self._run_git(["clone", "--", url, str(target_dir)], timeout=timeout)
        except asyncio.CancelledError:
            shutil.rmtree(target_dir, ignore_errors=True)
            raise
        if result.success:
            return GitOperationResult(
                success=True,
                message=f"Successfully cloned to {target_dir}",
                output=result.output,
            )

        if target_dir.exists():
            shutil.rmtree(target_dir, ignore_errors=True)
        return result

    async def pull(self, working_dir: Path, timeout: float) -> GitOperationResult:
        """
        Pull the latest changes into an existing checkout.

        Args:
            working_dir: Path to the checkout
            timeout: Timeout in seconds

        Returns:
            GitOperationResult with success status and message
        """
        working_dir = Path(working_dir)
        if not working_dir.exists():
            return GitOperationResult(
                success=False,
                message=f"Checkout does not exist: {working_dir}",
            )
        return await self._run_git(["pull"], cwd=working_dir, timeout=timeout)

    async def is_checkout(self, path: Path) -> bool:
        return (Path(path) / ".git").exists()

    async def current_branch(self, working_dir: Path) -> str | None:
        result = await self._run_git(
            ["rev-parse", "--abbrev-ref", "HEAD"],
            cwd=working_dir,
            timeout=self.metadata_timeout,
        )
        if not result.success or not result.output or result.output == "HEAD":
            return None
        return result.output

    async def last_commit_date(self, working_dir: Path, path: Path) -> str | None:
        result = await self._run_git(
            ["log", "-1", "--format=%aI", "--", str(path)],
            cwd=working_dir,
            timeout=self.metadata_timeout,
        )
        if not result.success or not result.output:
            return None
        return result.output
