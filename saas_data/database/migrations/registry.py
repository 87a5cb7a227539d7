# ==============================================================================
# MIGRATION REGISTRY - Discovery and Loading
# ==============================================================================
# Finds migration files per target and loads their Migration class
# ==============================================================================

from __future__ import annotations

import importlib.util
import inspect
import logging
import os
import re
from dataclasses import dataclass
from typing import List, Type, Union

from saas_data.core.exceptions import MigrationError
from saas_data.core.settings import DatabaseTarget
from saas_data.database.migrations.base import Migration
from saas_data.database.migrations.utils import (
    get_migrations_path,
    parse_migration_file_name,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationFile:
    """A discovered migration file."""

    name: str
    timestamp: int
    path: str


class MigrationRegistry:
    """
    Discovers migration files for a target.

    Only files whose name fully matches ``pattern`` and the migration file
    grammar are considered. Discovery order is (timestamp, name).

    Attributes:
        base_path: Root migrations directory (one sub-directory per target)
        pattern: File name regular expression
    """

    def __init__(self, base_path: str, pattern: str) -> None:
        self.base_path = base_path
        self.pattern = re.compile(pattern)

    def directory(self, target: Union[DatabaseTarget, str]) -> str:
        return get_migrations_path(target, self.base_path)

    def discover(self, target: Union[DatabaseTarget, str]) -> List[MigrationFile]:
        """
        List the migration files of a target in execution order.

        A missing directory means no migrations.
        """
        directory = self.directory(target)
        if not os.path.isdir(directory):
            logger.debug(f"Migrations directory does not exist: {directory}")
            return []

        files: List[MigrationFile] = []
        for entry in os.listdir(directory):
            if not self.pattern.fullmatch(entry):
                continue
            parsed = parse_migration_file_name(entry)
            if parsed is None:
                logger.warning(f"Skipping file with unexpected name: {entry}")
                continue
            if parsed.extension != "py":
                logger.warning(f"Skipping non-Python migration file: {entry}")
                continue
            files.append(
                MigrationFile(
                    name=parsed.stem,
                    timestamp=parsed.timestamp,
                    path=os.path.join(directory, entry),
                )
            )

        files.sort(key=lambda f: (f.timestamp, f.name))
        logger.debug(f"Discovered {len(files)} migrations in {directory}")
        return files

    def load(self, migration_file: MigrationFile) -> Type[Migration]:
        """
        Import a migration file and return its Migration subclass.

        Raises:
            MigrationError: If the file cannot be imported or does not
                define exactly one Migration subclass
        """
        module_name = "saas_data_migration_" + re.sub(r"\W", "_", migration_file.name)
        spec = importlib.util.spec_from_file_location(module_name, migration_file.path)
        if spec is None or spec.loader is None:
            raise MigrationError(
                f"Cannot load migration file {migration_file.path}",
                migration=migration_file.name,
            )

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise MigrationError(
                f"Failed to import migration {migration_file.name}: {e}",
                migration=migration_file.name,
            ) from e

        classes = [
            obj
            for obj in vars(module).values()
            if inspect.isclass(obj)
            and issubclass(obj, Migration)
            and obj is not Migration
            and obj.__module__ == module_name
        ]
        if len(classes) != 1:
            raise MigrationError(
                f"Migration {migration_file.name} must define exactly one "
                f"Migration subclass, found {len(classes)}",
                migration=migration_file.name,
            )
        return classes[0]
