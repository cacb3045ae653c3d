"""Per-ecosystem asset resolution, fetch and publish."""

import asyncio
import json
import tarfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Type
from urllib.parse import quote, urlparse

from loguru import logger

from ..api.client import GitHubClient
from ..api.pagination import paginate_graphql
from ..models.package import Package, PackageVersion
from ..tools.process import ExternalTool
from .staging import StagingArea

MAVEN_FILES_QUERY = """
query listPackageAssets($org: String!, $packageName: String!, $version: String!, $cursor: String) {
  organization(login: $org) {
    packages(first: 1, names: [$packageName]) {
      nodes {
        version(version: $version) {
          files(first: 100, after: $cursor) {
            nodes {
              name
            }
            pageInfo {
              hasNextPage
              endCursor
            }
          }
        }
      }
    }
  }
}
"""

CONTENT_TYPES = {
    '.pom': 'application/xml',
    '.jar': 'application/java-archive',
}
DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def content_type_for(filename: str) -> str:
    """Content type used when uploading a Maven file."""
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


def extract_tarball(path: Path, extract_dir: Path) -> None:
    """Unpack a gzipped tarball, refusing members that escape ``extract_dir``."""
    with tarfile.open(path, 'r:gz') as archive:
        archive.extractall(extract_dir, filter='data')


class PackageEcosystem(ABC):
    """Resolves, fetches and publishes the assets of one package ecosystem."""

    package_types: tuple = ()

    def __init__(
        self,
        source_client: GitHubClient,
        target_client: GitHubClient,
        staging: StagingArea,
        tool: Optional[ExternalTool] = None,
    ):
        """Initialize the ecosystem.

        Args:
            source_client: Client for the source organization
            target_client: Client for the target organization
            staging: Local staging area for downloaded assets
            tool: Runner for local commands (docker, npm)
        """
        self.source = source_client
        self.target = target_client
        self.staging = staging
        self.tool = tool or ExternalTool(
            redact=[source_client.config.token, target_client.config.token]
        )
        self.logger = logger.bind(component=self.__class__.__name__)

    @property
    def source_org(self) -> str:
        return self.source.org

    @property
    def target_org(self) -> str:
        return self.target.org

    async def resolve_assets(self, package: Package, version: PackageVersion) -> List[str]:
        """List the asset identifiers of a version.

        Any failure is logged and yields an empty list.
        """
        try:
            assets = await self._resolve(package, version)
        except Exception as e:
            self.logger.warning(
                f'Could not list assets of {package.name} {version.name}: {e}'
            )
            return []

        if not assets:
            self.logger.warning(f'No files found for {package.name} version {version.name}')
        else:
            self.logger.debug(f'Assets of {package.name} {version.name}: {", ".join(assets)}')
        return assets

    @abstractmethod
    async def _resolve(self, package: Package, version: PackageVersion) -> List[str]:
        pass

    @abstractmethod
    async def fetch_asset(
        self, package: Package, version: PackageVersion, asset: str
    ) -> Path:
        """Stage one asset locally and return its path."""
        pass

    @abstractmethod
    async def publish_asset(
        self, package: Package, version: PackageVersion, asset: str, path: Path
    ) -> None:
        """Publish one staged asset to the target organization."""
        pass

    async def prepare_fetch(self) -> None:
        """Hook run before a version's downloads start."""
        return None

    async def prepare_publish(self) -> None:
        """Hook run before a version's uploads start."""
        return None

    def is_published(
        self, version: PackageVersion, existing: List[PackageVersion]
    ) -> bool:
        """Whether ``version`` already exists among the target's versions."""
        return any(v.name == version.name for v in existing)


class MavenEcosystem(PackageEcosystem):
    """Maven and Gradle packages hosted on the Maven registry."""

    package_types = ('maven', 'gradle')

    @staticmethod
    def coordinates(package_name: str):
        """Split ``group.id.artifact`` into group and artifact."""
        parts = package_name.split('.')
        return '.'.join(parts[:-1]), parts[-1]

    def version_url(
        self, client: GitHubClient, package: Package, version: PackageVersion
    ) -> str:
        group_id, artifact_id = self.coordinates(package.name)
        base = client.config.maven_registry_url
        segments = [client.org, package.repository_name or '']
        if group_id:
            segments.extend(group_id.split('.'))
        segments.extend([artifact_id, version.name])
        return base + '/' + '/'.join(quote(s, safe='') for s in segments)

    async def _resolve(self, package: Package, version: PackageVersion) -> List[str]:
        if not package.repository_name:
            self.logger.warning(f'Package {package.name} is not linked to a repository')
            return []

        def files_of(data):
            organization = data.get('organization') or {}
            nodes = (organization.get('packages') or {}).get('nodes') or []
            if not nodes or not nodes[0].get('version'):
                return None
            return nodes[0]['version'].get('files')

        variables = {
            'org': self.source_org,
            'packageName': package.name,
            'version': version.name,
        }
        return [
            node['name']
            async for node in paginate_graphql(
                self.source, MAVEN_FILES_QUERY, variables, files_of
            )
        ]

    async def fetch_asset(self, package, version, asset):
        url = f'{self.version_url(self.source, package, version)}/{quote(asset)}'
        return await self.source.download(url, self.staging.asset_path(package.name, asset))

    async def publish_asset(self, package, version, asset, path):
        url = f'{self.version_url(self.target, package, version)}/{quote(asset)}'
        body = await asyncio.to_thread(Path(path).read_bytes)
        await self.target.request(
            'PUT',
            url,
            headers={'Content-Type': content_type_for(asset)},
            raw_body=body,
        )
        self.logger.debug(f'Uploaded {asset} ({len(body)} bytes)')


class NpmEcosystem(PackageEcosystem):
    """npm packages hosted on the npm registry."""

    package_types = ('npm',)

    def staged_name(self, package: Package, version: PackageVersion) -> str:
        return f'{package.name}-{version.name}.tgz'

    async def _resolve(self, package, version):
        registry = self.source.config.npm_registry_url
        manifest_url = f'{registry}/@{self.source_org}/{quote(package.name, safe="")}'
        response = await self.source.get_async(manifest_url)
        versions = (response.data or {}).get('versions') or {}
        entry = versions.get(version.name)
        if not entry:
            self.logger.warning(f'Version {version.name} not found for package {package.name}')
            return []

        tarball = ((entry.get('dist') or {}).get('tarball') or '').rstrip('/')
        if not tarball:
            return []
        return [tarball.split('/')[-1]]

    async def fetch_asset(self, package, version, asset):
        registry = self.source.config.npm_registry_url
        url = (
            f'{registry}/download/@{self.source_org}/{quote(package.name, safe="")}/'
            f'{quote(version.name)}/{quote(asset)}'
        )
        destination = self.staging.asset_path(
            package.name, self.staged_name(package, version)
        )
        return await self.source.download(url, destination)

    async def publish_asset(self, package, version, asset, path):
        package_dir = self.staging.package_dir(package.name)
        extract_dir = package_dir / 'extracted'
        self.staging.remove(extract_dir)
        extract_dir.mkdir(parents=True)

        try:
            await asyncio.to_thread(extract_tarball, Path(path), extract_dir)

            package_root = extract_dir / 'package'
            self.rewrite_manifest(package_root / 'package.json')

            npmrc = package_dir / '.npmrc'
            npmrc.write_text(self.npmrc_content(), encoding='utf-8')

            await self.tool.run(
                [
                    'npm',
                    'publish',
                    '--ignore-scripts',
                    '--userconfig',
                    str(npmrc.resolve()),
                ],
                cwd=str(package_root),
            )
        finally:
            self.staging.remove(extract_dir)

    def npmrc_content(self) -> str:
        registry = self.target.config.npm_registry_url
        host = urlparse(registry).netloc
        return (
            f'//{host}/:_authToken={self.target.config.token}\n'
            f'registry={registry}/{self.target_org}\n'
        )

    def rewrite_manifest(self, manifest_path: Path) -> None:
        """Point the package name and publish registry at the target org."""
        with open(manifest_path, 'r', encoding='utf-8') as f:
            manifest = json.load(f)

        name = manifest.get('name') or ''
        bare_name = name.split('/', 1)[1] if name.startswith('@') and '/' in name else name
        manifest['name'] = f'@{self.target_org}/{bare_name}'

        publish_config = manifest.get('publishConfig')
        if isinstance(publish_config, dict) and 'registry' in publish_config:
            publish_config['registry'] = self.target.config.npm_registry_url

        with open(manifest_path, 'w', encoding='utf-8') as f:
            json.dump(manifest, f, indent=2)


class ContainerEcosystem(PackageEcosystem):
    """Container images on the container registry, moved with docker."""

    package_types = ('container',)

    def image_ref(self, client: GitHubClient, asset: str) -> str:
        return f'{client.config.container_registry}/{client.org}/{asset}'

    async def _resolve(self, package, version):
        # Most recent tag first.
        return [f'{package.name}:{tag}' for tag in reversed(version.container_tags)]

    async def _login(self, client: GitHubClient) -> None:
        await self.tool.run(
            [
                'docker',
                'login',
                client.config.container_registry,
                '-u',
                client.org,
                '--password-stdin',
            ],
            input=client.config.token,
        )

    async def prepare_fetch(self):
        await self._login(self.source)

    async def prepare_publish(self):
        await self._login(self.target)

    async def fetch_asset(self, package, version, asset):
        source_ref = self.image_ref(self.source, asset)
        destination = self.staging.asset_path(package.name, asset.replace(':', '_') + '.tar')
        await self.tool.run(['docker', 'pull', source_ref])
        await self.tool.run(['docker', 'save', source_ref, '-o', str(destination)])
        return destination

    async def publish_asset(self, package, version, asset, path):
        source_ref = self.image_ref(self.source, asset)
        target_ref = self.image_ref(self.target, asset)
        self.logger.info(f'Retagging {source_ref} to {target_ref}')
        await self.tool.run(['docker', 'tag', source_ref, target_ref])
        await self.tool.run(['docker', 'push', target_ref])

    def is_published(self, version, existing):
        tags = set(version.container_tags)
        for other in existing:
            if other.name == version.name:
                return True
            if tags and tags.issubset(other.container_tags):
                return True
        return False


ECOSYSTEMS: Dict[str, Type[PackageEcosystem]] = {
    package_type: ecosystem
    for ecosystem in (MavenEcosystem, NpmEcosystem, ContainerEcosystem)
    for package_type in ecosystem.package_types
}


def get_ecosystem(
    package_type: str,
    source_client: GitHubClient,
    target_client: GitHubClient,
    staging: StagingArea,
    tool: Optional[ExternalTool] = None,
) -> Optional[PackageEcosystem]:
    """Build the ecosystem for a package type, or None if unsupported."""
    ecosystem_cls = ECOSYSTEMS.get(package_type)
    if ecosystem_cls is None:
        return None
    return ecosystem_cls(source_client, target_client, staging, tool)
