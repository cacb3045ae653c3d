"""Git LFS (Large File Storage) detection and object transfer."""

import asyncio
import base64
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from typing import Any, List, Optional
from urllib.parse import urlparse

from loguru import logger

from ..api.client import GitHubClient
from ..api.exceptions import GitHubAPIError, GitHubNotFoundError
from ..tools.process import ExternalTool, ExternalToolError

LFS_FILTER = 'filter=lfs'
TARGET_REMOTE = 'target'


@dataclass
class LFSResult:
    """Result of an LFS operation."""

    repository: str
    success: bool
    error: Optional[str] = None


class LFSHandler:
    """Finds repositories that use LFS and copies their LFS objects."""

    def __init__(
        self,
        source_client: GitHubClient,
        target_client: GitHubClient,
        tool: ExternalTool,
        max_depth: int = 1,
        max_attempts: int = 10,
        retry_delay: float = 1.0,
    ):
        """Initialize LFS handler.

        Args:
            source_client: Client of the organization holding the objects
            target_client: Client of the organization receiving them
            tool: Runner for git commands
            max_depth: Directory levels searched for ``.gitattributes``
            max_attempts: Attempts per contents request
            retry_delay: Seconds between attempts
        """
        self.source = source_client
        self.target = target_client
        self.tool = tool
        self.max_depth = max_depth
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.logger = logger.bind(component='LFSHandler')

    async def uses_lfs(self, repo_name: str) -> bool:
        """Whether a source repository tracks files with LFS.

        A ``.gitattributes`` mentioning ``filter=lfs`` within ``max_depth``
        directory levels counts as LFS usage.
        """
        return await self._search(repo_name, '', 0)

    async def _search(self, repo_name: str, path: str, depth: int) -> bool:
        if depth >= self.max_depth:
            return False

        items = await self._get_contents(repo_name, path)
        if not isinstance(items, list):
            return False

        for item in items:
            if item.get('type') == 'file' and item.get('name') == '.gitattributes':
                if LFS_FILTER in await self._read_file(repo_name, item['path']):
                    return True
            elif item.get('type') == 'dir':
                if await self._search(repo_name, item['path'], depth + 1):
                    return True
        return False

    async def _get_contents(self, repo_name: str, path: str) -> Optional[Any]:
        """Contents API response for ``path``, retried on transient failures."""
        endpoint = f'/repos/{self.source.org}/{repo_name}/contents/{path}'
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self.source.get_async(endpoint)
                return response.data
            except GitHubNotFoundError:
                return None
            except GitHubAPIError as e:
                if attempt >= self.max_attempts:
                    self.logger.warning(
                        f'Max attempts reached for {repo_name} at path {path or "/"}: {e}'
                    )
                    return None
                await asyncio.sleep(self.retry_delay)
        return None

    async def _read_file(self, repo_name: str, path: str) -> str:
        data = await self._get_contents(repo_name, path)
        if not isinstance(data, dict) or not data.get('content'):
            return ''
        return base64.b64decode(data['content']).decode('utf-8', errors='replace')

    @staticmethod
    def remote_url(client: GitHubClient, repo_name: str) -> str:
        """HTTPS clone URL authenticated with the client's token."""
        server = urlparse(client.config.server_url)
        return (
            f'{server.scheme}://x-access-token:{client.config.token}@{server.netloc}'
            f'/{client.org}/{repo_name}.git'
        )

    def _git_env(self) -> dict:
        env = dict(os.environ)
        # Objects are fetched explicitly; a plain checkout needs none.
        env['GIT_LFS_SKIP_SMUDGE'] = '1'
        env['GIT_TERMINAL_PROMPT'] = '0'
        return env

    async def check_lfs_availability(self) -> bool:
        try:
            await self.tool.run(['git', 'lfs', 'version'])
            return True
        except ExternalToolError:
            return False

    async def migrate_lfs_objects(self, repo_name: str) -> LFSResult:
        """Copy every LFS object of a repository from source to target.

        The repository is cloned from the source into a temporary directory,
        all LFS objects are fetched from ``origin`` and pushed to the target
        remote; the clone is removed afterwards.
        """
        self.logger.info(f'Migrating LFS objects for repository: {repo_name}')
        safe = re.sub(r'[^A-Za-z0-9._-]+', '_', repo_name)
        temp_dir = tempfile.mkdtemp(prefix=f'repo-migration-{safe}-')
        env = self._git_env()
        commands: List[List[str]] = [
            ['git', 'clone', self.remote_url(self.source, repo_name), temp_dir],
            ['git', 'lfs', 'fetch', '--all', 'origin'],
            ['git', 'remote', 'add', TARGET_REMOTE, self.remote_url(self.target, repo_name)],
            ['git', 'lfs', 'push', '--all', TARGET_REMOTE],
        ]

        try:
            for command in commands:
                cwd = None if command[1] == 'clone' else temp_dir
                await self.tool.run(command, cwd=cwd, env=env)
            self.logger.info(f'LFS objects pushed for repository: {repo_name}')
            return LFSResult(repository=repo_name, success=True)
        except ExternalToolError as e:
            error_msg = f'LFS migration failed for {repo_name}: {e}'
            self.logger.error(error_msg)
            return LFSResult(repository=repo_name, success=False, error=error_msg)
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
