"""Tests for the wave-based asset transfer."""

import asyncio
from pathlib import Path

import pytest
from unittest.mock import AsyncMock, Mock

from gh_org_migrate.models.package import Package, PackageVersion
from gh_org_migrate.packages.ecosystems import PackageEcosystem
from gh_org_migrate.packages.staging import StagingArea
from gh_org_migrate.packages.transfer import TransferEngine

from conftest import FakeGitHub, make_client, make_config


class RecordingEcosystem(PackageEcosystem):
    """Ecosystem that records concurrency and fails selected assets."""

    def __init__(self, *args, fail_download=(), fail_upload=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_download = set(fail_download)
        self.fail_upload = set(fail_upload)
        self.in_flight = 0
        self.max_in_flight = 0
        self.events = []

    async def _resolve(self, package, version):
        return []

    async def _track(self, kind, asset):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.events.append((kind, asset))
        await asyncio.sleep(0)
        self.in_flight -= 1

    async def fetch_asset(self, package, version, asset):
        await self._track('download', asset)
        if asset in self.fail_download:
            raise RuntimeError(f'cannot download {asset}')
        return Path(self.staging.root) / asset

    async def publish_asset(self, package, version, asset, path):
        await self._track('upload', asset)
        if asset in self.fail_upload:
            raise RuntimeError(f'cannot upload {asset}')


class TestTransferEngine:
    """Test transfer engine."""

    @pytest.fixture(autouse=True)
    def setup_engine(self, tmp_path):
        config = make_config()
        self.source = make_client(config.source, FakeGitHub())
        self.target = make_client(config.target, FakeGitHub())
        self.staging = StagingArea(tmp_path)
        self.tool = Mock()
        self.tool.run = AsyncMock()
        self.package = Package(name='com.acme.widget', package_type='maven')
        self.version = PackageVersion(name='1.2.0')

    def ecosystem(self, **kwargs):
        return RecordingEcosystem(
            self.source, self.target, self.staging, self.tool, **kwargs
        )

    @pytest.mark.asyncio
    async def test_waves_are_bounded(self):
        """Seven assets at concurrency three take three waves, never more than three at once."""
        ecosystem = self.ecosystem()
        engine = TransferEngine(ecosystem, self.staging, concurrency=3)
        assets = [f'file-{i}' for i in range(7)]

        outcome = await engine.transfer(self.package, self.version, assets)

        assert outcome.waves == 3
        assert ecosystem.max_in_flight <= 3
        assert outcome.downloaded == assets
        assert outcome.uploaded == assets
        assert outcome.success is True

    @pytest.mark.asyncio
    async def test_uploads_start_after_all_downloads(self):
        """Test no upload begins before every download settled."""
        ecosystem = self.ecosystem()
        engine = TransferEngine(ecosystem, self.staging, concurrency=2)

        await engine.transfer(self.package, self.version, ['a', 'b', 'c'])

        kinds = [kind for kind, _ in ecosystem.events]
        assert kinds == ['download'] * 3 + ['upload'] * 3

    @pytest.mark.asyncio
    async def test_download_failure_is_isolated(self):
        """Test one failed download does not stop the others."""
        ecosystem = self.ecosystem(fail_download={'b'})
        engine = TransferEngine(ecosystem, self.staging, concurrency=5)

        outcome = await engine.transfer(self.package, self.version, ['a', 'b', 'c'])

        assert outcome.uploaded == ['a', 'c']
        assert [(f.asset, f.stage) for f in outcome.failed] == [('b', 'download')]
        assert ('upload', 'b') not in ecosystem.events
        assert outcome.success is False

    @pytest.mark.asyncio
    async def test_upload_failure_is_isolated(self):
        """Test one failed upload is recorded and the rest published."""
        ecosystem = self.ecosystem(fail_upload={'a'})
        engine = TransferEngine(ecosystem, self.staging, concurrency=1)

        outcome = await engine.transfer(self.package, self.version, ['a', 'b'])

        assert outcome.uploaded == ['b']
        assert outcome.failed[0].stage == 'upload'
        assert 'cannot upload a' in outcome.failed[0].error

    @pytest.mark.asyncio
    async def test_prepare_publish_failure_fails_staged_assets(self):
        """Test a failed registry login fails every staged asset."""
        ecosystem = self.ecosystem()
        ecosystem.prepare_publish = AsyncMock(side_effect=RuntimeError('login denied'))
        engine = TransferEngine(ecosystem, self.staging, concurrency=2)

        outcome = await engine.transfer(self.package, self.version, ['a', 'b'])

        assert outcome.uploaded == []
        assert [(f.asset, f.stage) for f in outcome.failed] == [
            ('a', 'upload'),
            ('b', 'upload'),
        ]

    @pytest.mark.asyncio
    async def test_no_assets(self):
        """Test an empty asset list does nothing."""
        ecosystem = self.ecosystem()
        engine = TransferEngine(ecosystem, self.staging)

        outcome = await engine.transfer(self.package, self.version, [])

        assert outcome.waves == 0
        assert ecosystem.events == []
        assert outcome.success is False

    @pytest.mark.asyncio
    async def test_duplicate_assets_transferred_once(self):
        """Test a repeated asset is downloaded and published a single time."""
        ecosystem = self.ecosystem()
        engine = TransferEngine(ecosystem, self.staging, concurrency=2)

        outcome = await engine.transfer(self.package, self.version, ['a', 'b', 'a'])

        assert outcome.downloaded == ['a', 'b']
        assert outcome.uploaded == ['a', 'b']
        assert ecosystem.events.count(('upload', 'a')) == 1
        assert outcome.waves == 1

    def test_invalid_concurrency(self):
        """Test concurrency must be positive."""
        with pytest.raises(ValueError):
            TransferEngine(self.ecosystem(), self.staging, concurrency=0)
