"""Bounded, wave-based transfer of package assets."""

import asyncio
from pathlib import Path
from typing import Dict, List

from loguru import logger

from ..models.package import AssetFailure, Package, PackageVersion, TransferOutcome
from ..utils.batching import split_batches
from .ecosystems import PackageEcosystem
from .staging import StagingArea


class TransferEngine:
    """Moves the assets of one package version from source to target.

    Downloads run in sequential waves of ``concurrency`` assets; uploads start
    once every download has settled and use the same wave size.
    """

    def __init__(
        self,
        ecosystem: PackageEcosystem,
        staging: StagingArea,
        concurrency: int = 5,
    ):
        if concurrency <= 0:
            raise ValueError('concurrency must be positive')
        self.ecosystem = ecosystem
        self.staging = staging
        self.concurrency = concurrency
        self.logger = logger.bind(component='TransferEngine')

    async def transfer(
        self, package: Package, version: PackageVersion, assets: List[str]
    ) -> TransferOutcome:
        """Download then publish every asset of a version.

        Args:
            package: Package being migrated
            version: Version being migrated
            assets: Asset identifiers from the resolver

        Returns:
            Per-asset outcome; failures never raise
        """
        outcome = TransferOutcome(package=package.name, version=version.name)
        assets = list(dict.fromkeys(assets))
        if not assets:
            return outcome

        try:
            await self.ecosystem.prepare_fetch()
        except Exception as e:
            self._fail_all(outcome, assets, 'download', e)
            return outcome

        staged: Dict[str, Path] = {}
        for wave in split_batches(assets, self.concurrency):
            outcome.waves += 1
            results = await asyncio.gather(
                *(self.ecosystem.fetch_asset(package, version, asset) for asset in wave),
                return_exceptions=True,
            )
            for asset, result in zip(wave, results):
                if isinstance(result, BaseException):
                    self._record_failure(outcome, asset, 'download', result)
                else:
                    staged[asset] = result
                    outcome.downloaded.append(asset)

        to_upload = [asset for asset in assets if asset in staged]
        if not to_upload:
            return outcome

        try:
            await self.ecosystem.prepare_publish()
        except Exception as e:
            self._fail_all(outcome, to_upload, 'upload', e)
            return outcome

        for wave in split_batches(to_upload, self.concurrency):
            results = await asyncio.gather(
                *(
                    self.ecosystem.publish_asset(package, version, asset, staged[asset])
                    for asset in wave
                ),
                return_exceptions=True,
            )
            for asset, result in zip(wave, results):
                if isinstance(result, BaseException):
                    self._record_failure(outcome, asset, 'upload', result)
                else:
                    outcome.uploaded.append(asset)

        self.logger.info(
            f'{package.name} {version.name}: {len(outcome.uploaded)}/{len(assets)} assets '
            f'transferred in {outcome.waves} download waves'
        )
        return outcome

    def _record_failure(
        self, outcome: TransferOutcome, asset: str, stage: str, error: BaseException
    ) -> None:
        self.logger.warning(f'Failed to {stage} {asset}: {error}')
        outcome.failed.append(AssetFailure(asset=asset, stage=stage, error=str(error)))

    def _fail_all(
        self, outcome: TransferOutcome, assets: List[str], stage: str, error: Exception
    ) -> None:
        self.logger.error(f'Cannot {stage} assets of {outcome.package}: {error}')
        for asset in assets:
            outcome.failed.append(AssetFailure(asset=asset, stage=stage, error=str(error)))
