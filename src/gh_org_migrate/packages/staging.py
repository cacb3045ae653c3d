"""Local staging directory for package assets."""

import re
import shutil
from pathlib import Path
from typing import Union

from loguru import logger

_UNSAFE = re.compile(r'[^A-Za-z0-9._-]+')


def safe_name(name: str) -> str:
    """Turn a package or file name into a single safe path component."""
    cleaned = _UNSAFE.sub('_', name).strip('._')
    return cleaned or '_'


class StagingArea:
    """Owns ``<root>/<package>/<file>`` for the duration of a run."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def reset(self) -> None:
        """Remove any previous staging content and recreate the root."""
        if self.root.exists():
            logger.debug(f'Clearing staging directory {self.root}')
            shutil.rmtree(self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    def package_dir(self, package_name: str) -> Path:
        path = self.root / safe_name(package_name)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def asset_path(self, package_name: str, file_name: str) -> Path:
        return self.package_dir(package_name) / safe_name(file_name)

    def remove(self, path: Union[str, Path]) -> None:
        path = Path(path)
        if path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
        elif path.exists():
            path.unlink()
