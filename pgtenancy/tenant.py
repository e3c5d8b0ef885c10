# (c) Copyright Datacraft, 2026
"""
Tenancy facade.

Keeps one adapter per thread so every thread owns its own connection
and tenant context, and exposes the tenancy contract on top of it.

Example:
	tenancy = get_tenancy()
	tenancy.create("acme")
	with tenancy.scoped("acme"):
		with tenancy.session() as session:
			session.execute(select(Invoice))
"""
import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from .adapters import SchemaAdapter, create_adapter
from .adapters.base import Callback, Seeder
from .config import Settings, get_settings
from .dump import CommandRunner, PgDump
from .log_config import configure_logging
from .migrations import AlembicMigrator, Migrator
from .registry import TenantRegistry

logger = logging.getLogger(__name__)


class Tenancy:
	"""Entry point to the tenancy contract."""

	def __init__(
		self,
		registry: TenantRegistry,
		engine: Engine | None = None,
		migrator: Migrator | None = None,
		seeder: Seeder | None = None,
		command_runner: CommandRunner | None = None,
	):
		self.registry = registry
		self.engine = engine
		self.migrator = migrator
		self.seeder = seeder
		self.command_runner = command_runner
		self._callbacks: list[tuple[str, str, Callback]] = []
		self._local = threading.local()

	@classmethod
	def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> "Tenancy":
		from .db.engine import get_engine

		settings = settings or get_settings()
		configure_logging(settings.log_config)
		kwargs.setdefault("engine", get_engine())
		kwargs.setdefault("migrator", AlembicMigrator(settings.alembic_config))
		return cls(TenantRegistry.from_settings(settings), **kwargs)

	def _build_adapter(self) -> SchemaAdapter:
		pg_dump = None
		if self.engine is not None:
			pg_dump = PgDump(
				self.engine.url,
				runner=self.command_runner,
				executable=self.registry.pg_dump_path,
			)
		adapter = create_adapter(
			self.registry,
			engine=self.engine,
			migrator=self.migrator,
			seeder=self.seeder,
			pg_dump=pg_dump,
		)
		logger.debug(
			f"Created {type(adapter).__name__} for thread {threading.current_thread().name}"
		)
		return adapter

	@property
	def adapter(self) -> SchemaAdapter:
		"""Adapter owned by the calling thread."""
		adapter = getattr(self._local, "adapter", None)
		if adapter is None:
			adapter = self._build_adapter()
			for event, when, callback in self._callbacks:
				adapter.add_callback(event, when, callback)
			self._local.adapter = adapter
		return adapter

	def release(self) -> None:
		"""Close the calling thread's adapter and its connection."""
		adapter = getattr(self._local, "adapter", None)
		if adapter is not None:
			self._local.adapter = None
			adapter.close()

	def add_callback(self, event: str, when: str, callback: Callback) -> None:
		"""Register a callback on this thread's adapter and on every adapter created later."""
		self._callbacks.append((event, when, callback))
		adapter = getattr(self._local, "adapter", None)
		if adapter is not None:
			adapter.add_callback(event, when, callback)

	def current(self) -> str:
		return self.adapter.current()

	def switch(self, tenant: str | None = None) -> None:
		self.adapter.switch(tenant)

	@contextmanager
	def scoped(self, tenant: str | None) -> Iterator[SchemaAdapter]:
		with self.adapter.scoped(tenant) as adapter:
			yield adapter

	def reset(self) -> None:
		self.adapter.reset()

	def create(self, tenant: str) -> None:
		self.adapter.create(tenant)

	def drop(self, tenant: str) -> None:
		self.adapter.drop(tenant)

	def seed(self) -> None:
		self.adapter.seed()

	def each(self, tenants: Iterable[str] | None = None) -> Iterator[str]:
		return self.adapter.each(tenants)

	def session(self) -> Session:
		return self.adapter.session()


_tenancy: Tenancy | None = None


def get_tenancy() -> Tenancy:
	global _tenancy
	if _tenancy is None:
		_tenancy = Tenancy.from_settings()
	return _tenancy


def set_tenancy(tenancy: Tenancy | None) -> None:
	"""Replace the process wide tenancy (for testing or custom wiring)."""
	global _tenancy
	_tenancy = tenancy
