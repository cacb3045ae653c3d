"""CSV files read and written by the migration drivers."""

import csv
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from ..models.secret import SecretEntry

SECRETS_REPORT_HEADER = ['Type', 'Repository/Organization', 'Secret Name']
SECRETS_FILE_HEADER = ['type', 'name', 'repo', 'value']

_SOURCE_COLUMNS = ('sourceusername', 'source username', 'source_username')
_TARGET_COLUMNS = ('targetusername', 'target username', 'target_username')


def load_secrets_csv(path: str) -> Tuple[List[SecretEntry], List[str]]:
    """Read the secrets migration file.

    Args:
        path: CSV with ``type``, ``name``, ``repo`` and ``value`` columns

    Returns:
        Valid entries and one error message per rejected row

    Raises:
        FileNotFoundError: If the file does not exist
    """
    entries: List[SecretEntry] = []
    errors: List[str] = []

    with open(path, newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for line_number, row in enumerate(reader, start=2):
            row = {(k or '').strip().lower(): v for k, v in row.items()}
            try:
                entries.append(
                    SecretEntry(
                        type=row.get('type') or '',
                        name=row.get('name') or '',
                        repo=row.get('repo') or None,
                        value=row.get('value'),
                    )
                )
            except ValidationError as e:
                reason = '; '.join(err['msg'] for err in e.errors())
                errors.append(f'{path}:{line_number}: {reason}')

    logger.debug(f'Loaded {len(entries)} secrets from {path}')
    return entries, errors


def write_secrets_report(path: str, rows: Iterable[Tuple[str, str, str]]) -> int:
    """Write the secrets discovery report.

    Args:
        path: Output CSV path
        rows: ``(type, repository or organization, secret name)`` tuples

    Returns:
        Number of rows written
    """
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(output, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(SECRETS_REPORT_HEADER)
        for row in rows:
            writer.writerow(row)
            count += 1
    return count


def write_secrets_template(path: str, entries: Iterable[SecretEntry]) -> int:
    """Write a migration file skeleton with empty values to fill in."""
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(output, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(SECRETS_FILE_HEADER)
        for entry in entries:
            writer.writerow([entry.type, entry.name, entry.repo or '', ''])
            count += 1
    return count


def load_username_mappings(path: Optional[str]) -> Dict[str, str]:
    """Read a source-login to target-login mapping.

    Header names are matched case-insensitively; both ``sourceUsername`` and
    ``source username`` spellings are accepted.
    """
    if not path:
        return {}

    mappings: Dict[str, str] = {}
    with open(path, newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        fields = {(name or '').strip().lower(): name for name in reader.fieldnames or []}
        source_col = next((fields[c] for c in _SOURCE_COLUMNS if c in fields), None)
        target_col = next((fields[c] for c in _TARGET_COLUMNS if c in fields), None)
        if source_col is None or target_col is None:
            raise ValueError(
                f'{path} must have source username and target username columns'
            )

        for row in reader:
            source = (row.get(source_col) or '').strip()
            target = (row.get(target_col) or '').strip()
            if source and target:
                mappings[source] = target

    logger.info(f'Loaded {len(mappings)} username mappings from {path}')
    return mappings
