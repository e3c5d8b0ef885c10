# (c) Copyright Datacraft, 2026
"""
Per-tenant migrations.

Migration files themselves are executed by Alembic; this module only
points Alembic at the right connection and schema.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy.engine import Connection

logger = logging.getLogger(__name__)


class Migrator(ABC):
	"""Migration primitives applied to one tenant schema."""

	@abstractmethod
	def run_all(self, conn: Connection, schema: str) -> None:
		"""Apply every pending migration."""
		...

	@abstractmethod
	def up(self, conn: Connection, schema: str, version: str) -> None:
		"""Migrate up to ``version``."""
		...

	@abstractmethod
	def down(self, conn: Connection, schema: str, version: str) -> None:
		"""Migrate down to ``version``."""
		...

	@abstractmethod
	def rollback(self, conn: Connection, schema: str, steps: int = 1) -> None:
		"""Revert the last ``steps`` migrations."""
		...


class AlembicMigrator(Migrator):
	"""
	Runs Alembic commands against a tenant schema.

	The adapter's connection is handed to ``env.py`` through
	``config.attributes["connection"]`` and the schema through
	``config.attributes["tenant_schema"]``; see
	:func:`run_tenant_migrations` for the matching env.py side.
	"""

	def __init__(self, config_path: str | Path = "alembic.ini"):
		self.config_path = Path(config_path)

	def _config(self, conn: Connection, schema: str) -> Config:
		cfg = Config(str(self.config_path))
		cfg.attributes["connection"] = conn
		cfg.attributes["tenant_schema"] = schema
		return cfg

	def run_all(self, conn: Connection, schema: str) -> None:
		logger.info(f"Migrating schema {schema} to head")
		command.upgrade(self._config(conn, schema), "head")

	def up(self, conn: Connection, schema: str, version: str) -> None:
		logger.info(f"Migrating schema {schema} up to {version}")
		command.upgrade(self._config(conn, schema), version)

	def down(self, conn: Connection, schema: str, version: str) -> None:
		logger.info(f"Migrating schema {schema} down to {version}")
		command.downgrade(self._config(conn, schema), version)

	def rollback(self, conn: Connection, schema: str, steps: int = 1) -> None:
		if steps < 1:
			raise ValueError(f"Rollback steps must be positive, got {steps}")
		logger.info(f"Rolling back schema {schema} by {steps} step(s)")
		command.downgrade(self._config(conn, schema), f"-{steps}")


def run_tenant_migrations(context: Any, target_metadata: Any = None) -> None:
	"""
	Online migration entry point for an Alembic ``env.py``.

	Uses the connection and schema supplied by :class:`AlembicMigrator`
	and keeps the version table inside the tenant schema. The search path
	has already been pointed at the tenant by the adapter.
	"""
	connection = context.config.attributes["connection"]
	schema = context.config.attributes.get("tenant_schema", "public")
	context.configure(
		connection=connection,
		target_metadata=target_metadata,
		version_table_schema=schema,
	)
	with context.begin_transaction():
		context.run_migrations()
