"""External command execution (git, git lfs, docker, npm)."""

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

REDACTED = '***'


@dataclass
class ToolResult:
    """Result of an external command."""

    exit_code: int
    stdout: str = ''
    stderr: str = ''

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class ExternalToolError(Exception):
    """An external command exited non-zero or timed out."""

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        exit_code: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class ExternalTool:
    """Runs local commands with a timeout, keeping secrets out of the logs."""

    def __init__(self, timeout: int = 3600, redact: Optional[Iterable[str]] = None):
        """Initialize the runner.

        Args:
            timeout: Seconds before a command is killed
            redact: Values (tokens) masked in logged command lines and errors
        """
        self.timeout = timeout
        self.redact: List[str] = [value for value in (redact or []) if value]
        self.logger = logger.bind(component='ExternalTool')

    def mask(self, text: str) -> str:
        for value in self.redact:
            text = text.replace(value, REDACTED)
        return text

    async def run(
        self,
        args: Sequence[str],
        cwd: Optional[str] = None,
        input: Optional[str] = None,
        check: bool = True,
        env: Optional[Dict[str, str]] = None,
    ) -> ToolResult:
        """Run a command and wait for it.

        Args:
            args: Program and arguments
            cwd: Working directory
            input: Text written to stdin
            check: Raise on non-zero exit
            env: Environment for the child process

        Returns:
            Exit code and captured output

        Raises:
            ExternalToolError: Timeout, missing program, or non-zero exit with check
        """
        command = self.mask(' '.join(str(arg) for arg in args))
        self.logger.debug(f'Running: {command}')

        try:
            process = await asyncio.create_subprocess_exec(
                *[str(arg) for arg in args],
                stdin=asyncio.subprocess.PIPE if input is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
            )
        except OSError as e:
            raise ExternalToolError(
                f'Cannot start {args[0]}: {e}', command=command
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input.encode() if input is not None else None),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ExternalToolError(
                f'Command timed out after {self.timeout} seconds: {command}',
                command=command,
            )

        result = ToolResult(
            exit_code=process.returncode,
            stdout=self.mask(stdout.decode(errors='replace') if stdout else ''),
            stderr=self.mask(stderr.decode(errors='replace') if stderr else ''),
        )

        if check and not result.success:
            error_output = result.stderr.strip() or result.stdout.strip() or 'Unknown error'
            self.logger.warning(f'Command failed: {command} - {error_output}')
            raise ExternalToolError(
                f'Command failed with exit code {result.exit_code}: {command}: {error_output}',
                command=command,
                exit_code=result.exit_code,
                stderr=result.stderr,
            )

        return result
