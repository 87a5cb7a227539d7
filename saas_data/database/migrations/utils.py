# ==============================================================================
# MIGRATION UTILITIES - File Naming, Templates and Filesystem Helpers
# ==============================================================================
# File names follow <13-digit ms timestamp>-<PascalCaseName>.<ts|js|py>
# Only .py units are discovered and executed (see MIGRATIONS_PATTERN)
# ==============================================================================

from __future__ import annotations

import logging
import os
import re
import textwrap
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from saas_data.core.settings import DatabaseTarget

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

MIGRATION_FILE_RE = re.compile(r"([0-9]{13})-([A-Za-z][A-Za-z0-9]*)\.(ts|js|py)")
MIGRATION_NAME_RE = re.compile(r"[A-Za-z][A-Za-z0-9]*")


@dataclass(frozen=True)
class MigrationFileName:
    """Components of a valid migration file name."""

    timestamp: int
    name: str
    extension: str

    @property
    def stem(self) -> str:
        return f"{self.timestamp}-{self.name}"


# ==============================================================================
# FILESYSTEM HELPERS
# ==============================================================================

def create_directories(path: PathLike) -> None:
    """Create a directory and its parents; existing directories are fine."""
    Path(path).mkdir(parents=True, exist_ok=True)


def create_file(path: PathLike, content: str, overwrite: bool = True) -> bool:
    """
    Write a text file, creating parent directories as needed.

    Args:
        path: Destination file
        content: File content (UTF-8)
        overwrite: When False, an existing file is left untouched

    Returns:
        True if the file was written, False if it existed and
        ``overwrite`` was False
    """
    target = Path(path)
    create_directories(target.parent)

    if not overwrite and target.exists():
        logger.warning(f"File already exists, not overwriting: {target}")
        return False

    target.write_text(content, encoding="utf-8")
    logger.debug(f"Wrote {target}")
    return True


def read_file(path: PathLike) -> str:
    """
    Read a UTF-8 text file.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    return Path(path).read_text(encoding="utf-8")


def file_exists(path: PathLike) -> bool:
    """Whether ``path`` is an existing file. Never raises."""
    try:
        return Path(path).is_file()
    except (OSError, TypeError, ValueError):
        return False


def get_migrations_path(target: Union[DatabaseTarget, str], base_path: PathLike) -> str:
    """Directory holding the migration files of one target."""
    target = DatabaseTarget.parse(target)
    return os.path.join(os.fspath(base_path), target.value)


# ==============================================================================
# NAMING
# ==============================================================================

def to_pascal_case(value: str) -> str:
    """
    Convert a free-form name to PascalCase.

    Words are split on hyphens, underscores and whitespace; each word's
    first character is upper-cased and the rest is kept as written, so
    ``add_userIndex`` becomes ``AddUserIndex``.
    """
    words = [word for word in re.split(r"[-_\s]+", value.strip()) if word]
    return "".join(word[0].upper() + word[1:] for word in words)


def current_timestamp() -> int:
    """Current time as a 13-digit millisecond timestamp."""
    return time.time_ns() // 1_000_000


def build_migration_file_name(name: str, timestamp: int) -> str:
    return f"{timestamp}-{name}.py"


def validate_migration_file_name(file_name: str) -> bool:
    """
    True if ``file_name`` fully matches the migration file grammar.

    Grammar: 13 ASCII digits, ``-``, an ASCII letter followed by ASCII
    letters or digits, then ``.ts``, ``.js`` or ``.py``.
    """
    return MIGRATION_FILE_RE.fullmatch(file_name) is not None


def parse_migration_file_name(file_name: str) -> Optional[MigrationFileName]:
    """
    Split a migration file name into its parts.

    Returns:
        MigrationFileName, or None if the name is not valid
    """
    match = MIGRATION_FILE_RE.fullmatch(file_name)
    if match is None:
        return None
    timestamp, name, extension = match.groups()
    return MigrationFileName(timestamp=int(timestamp), name=name, extension=extension)


# ==============================================================================
# TEMPLATES
# ==============================================================================

_RELATIONAL_PLACEHOLDER = (
    "# Schema changes with alembic operations, e.g.\n"
    "# op.add_column(\"tenants\", sa.Column(\"plan\", sa.String(20)))\n"
    "pass"
)

_DOCUMENT_PLACEHOLDER = (
    "# Statements against self.db (Motor database), e.g.\n"
    "# await self.db[\"tenants\"].create_index(\"plan\", name=\"tenants_plan_idx\")"
)

_RELATIONAL_TEMPLATE = '''"""
{name} migration

Created: {created}
Target: {target}
"""

import logging

import sqlalchemy as sa

from saas_data.database.migrations import Migration

logger = logging.getLogger(__name__)


class {class_name}(Migration):
    """{name} schema change."""

    async def up(self) -> None:
        logger.info("Applying {class_name}")
        await self.run_ops(self._upgrade)

    async def down(self) -> None:
        logger.info("Reverting {class_name}")
        await self.run_ops(self._downgrade)

    @staticmethod
    def _upgrade(op) -> None:
{upgrade}

    @staticmethod
    def _downgrade(op) -> None:
{downgrade}
'''

_DOCUMENT_TEMPLATE = '''"""
{name} migration

Created: {created}
Target: {target}
"""

import logging

from saas_data.database.migrations import Migration

logger = logging.getLogger(__name__)


class {class_name}(Migration):
    """{name} collection change."""

    async def up(self) -> None:
        logger.info("Applying {class_name}")
{upgrade}

    async def down(self) -> None:
        logger.info("Reverting {class_name}")
{downgrade}
'''


def _body(code: Optional[str], placeholder: str) -> str:
    return textwrap.indent(textwrap.dedent(code or placeholder).strip("\n"), " " * 8)


def get_migration_template(
    name: str,
    timestamp: int,
    target: Union[DatabaseTarget, str],
    upgrade: Optional[str] = None,
    downgrade: Optional[str] = None,
) -> str:
    """
    Render the source of a migration unit.

    Pure: the creation date is derived from ``timestamp``.

    Args:
        name: PascalCase migration name
        timestamp: 13-digit millisecond timestamp
        target: Database target the unit is written for
        upgrade: Body of the apply step (placeholder when None)
        downgrade: Body of the revert step (placeholder when None)

    Returns:
        Python source of the unit; its class is ``<name><timestamp>``
    """
    target = DatabaseTarget.parse(target)
    created = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)

    if target == DatabaseTarget.POSTGRESQL:
        template, placeholder = _RELATIONAL_TEMPLATE, _RELATIONAL_PLACEHOLDER
    else:
        template, placeholder = _DOCUMENT_TEMPLATE, _DOCUMENT_PLACEHOLDER

    return template.format(
        name=name,
        class_name=f"{name}{timestamp}",
        created=created.strftime("%Y-%m-%d %H:%M:%S UTC"),
        target=target.value,
        upgrade=_body(upgrade, placeholder),
        downgrade=_body(downgrade, placeholder),
    )
