# (c) Copyright Datacraft, 2026
"""Abstract tenant adapter interface."""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session

from pgtenancy.errors import CreateTenantError, TenancyError
from pgtenancy.migrations import Migrator
from pgtenancy.registry import TenantRegistry

logger = logging.getLogger(__name__)

Callback = Callable[["SchemaAdapter", Any], None]
Seeder = Callable[["SchemaAdapter"], None]

CALLBACK_EVENTS = ("switch", "create")
CALLBACK_TIMES = ("before", "after")


class AdapterState(str, Enum):
	"""Lifecycle of an adapter instance."""
	UNINITIALIZED = "uninitialized"
	DEFAULT = "default"
	TENANT_ACTIVE = "tenant_active"


class SchemaAdapter(ABC):
	"""
	Base class for tenancy strategies.

	An adapter owns one database connection and the tenant context
	attached to it. Adapters are not thread safe; keep one per thread
	(see :class:`pgtenancy.tenant.Tenancy`).
	"""

	def __init__(
		self,
		registry: TenantRegistry,
		engine: Engine | None = None,
		migrator: Migrator | None = None,
		seeder: Seeder | None = None,
		connection: Connection | None = None,
	):
		self.registry = registry
		self.engine = engine
		self.migrator = migrator
		self.seeder = seeder
		self._connection = connection
		self._initialized = False
		self._callbacks: dict[str, dict[str, list[Callback]]] = {
			event: {when: [] for when in CALLBACK_TIMES} for event in CALLBACK_EVENTS
		}

	@property
	def default_tenant(self) -> str:
		return self.registry.default_schema

	@property
	def state(self) -> AdapterState:
		if not self._initialized:
			return AdapterState.UNINITIALIZED
		if self.current() == self.default_tenant:
			return AdapterState.DEFAULT
		return AdapterState.TENANT_ACTIVE

	@property
	def connection(self) -> Connection:
		"""Connection owned by this adapter, opened on first use."""
		if self._connection is None:
			if self.engine is None:
				raise TenancyError(f"{type(self).__name__} has no engine to connect with")
			self._connection = self._open_connection()
		return self._connection

	def _open_connection(self) -> Connection:
		return self.engine.connect()

	def session(self) -> Session:
		"""ORM session bound to this adapter's connection."""
		return Session(bind=self.connection)

	def close(self) -> None:
		if self._connection is not None:
			self._connection.close()
			self._connection = None

	def setup(self) -> "SchemaAdapter":
		"""Pin excluded models and start from the default tenant."""
		self.process_excluded_models()
		self._initialized = True
		self.reset()
		return self

	# Callbacks

	def add_callback(self, event: str, when: str, callback: Callback) -> None:
		"""Register ``callback(adapter, tenant)`` before or after an event."""
		if event not in CALLBACK_EVENTS or when not in CALLBACK_TIMES:
			raise ValueError(f"Unknown callback: {when} {event}")
		self._callbacks[event][when].append(callback)

	@contextmanager
	def _run_callbacks(self, event: str, tenant: Any) -> Iterator[None]:
		for callback in self._callbacks[event]["before"]:
			callback(self, tenant)
		yield
		for callback in self._callbacks[event]["after"]:
			callback(self, tenant)

	# Tenant naming

	def environmentify(self, tenant: str) -> str:
		"""Physical name of ``tenant`` with the environment affix applied."""
		env = self.registry.environment
		if not tenant or not env or tenant == self.default_tenant:
			return tenant
		if self.registry.prepend_environment and not tenant.startswith(f"{env}_"):
			return f"{env}_{tenant}"
		if self.registry.append_environment and not tenant.endswith(f"_{env}"):
			return f"{tenant}_{env}"
		return tenant

	# Public contract

	@abstractmethod
	def current(self) -> str:
		"""Active tenant, or the default tenant when none is selected."""
		...

	def switch(self, tenant: str | None = None) -> None:
		"""
		Make ``tenant`` the active tenant until the next switch.

		``None`` resets to the default tenant.
		"""
		logger.debug(f"Switch to {tenant}")
		with self._run_callbacks("switch", tenant):
			self._connect_to_new(tenant)

	@contextmanager
	def scoped(self, tenant: str | None) -> Iterator["SchemaAdapter"]:
		"""
		Switch to ``tenant`` for the duration of the block.

		The tenant active before the block is restored on every exit
		path. If it can no longer be restored (it was dropped inside the
		block, for example) the adapter falls back to the default tenant.

		An exception raised inside the block always reaches the caller
		unchanged, even when restoring afterwards fails too.
		"""
		previous = self._active()
		try:
			self.switch(tenant)
			yield self
		except BaseException:
			try:
				self._restore_or_reset(previous)
			except TenancyError as exc:
				logger.error(f"Could not leave tenant {tenant} after an error: {exc}")
			raise
		self._restore_or_reset(previous)

	def _restore_or_reset(self, previous: Any) -> None:
		try:
			self._restore(previous)
		except TenancyError as exc:
			logger.warning(f"Could not restore tenant {previous}: {exc}; resetting")
			self.reset()

	def reset(self) -> None:
		"""Return to the default tenant."""
		self._connect_to_new(None)

	def create(self, tenant: str) -> None:
		"""
		Provision ``tenant``.

		Raises TenantExists if it is already present and
		CreateTenantError if provisioning fails afterwards.
		"""
		with self._run_callbacks("create", tenant):
			self._create_tenant(tenant)
			try:
				with self.scoped(tenant):
					self.import_database_schema()
					if self.registry.seed_after_create:
						self.seed()
			except Exception as exc:
				raise CreateTenantError(tenant, exc) from exc
			self.process_excluded_models()
		logger.info(f"Created tenant: {tenant}")

	@abstractmethod
	def drop(self, tenant: str) -> None:
		"""Irreversibly remove the data of ``tenant``."""
		...

	def seed(self) -> None:
		"""Load seed data into the current tenant."""
		if self.seeder is not None:
			logger.info(f"Seeding tenant {self.current()}")
			self.seeder(self)
			return
		if self.registry.seed_data_file:
			path = Path(self.registry.seed_data_file)
			logger.info(f"Seeding tenant {self.current()} from {path}")
			self.run_script(path.read_text())
			return
		logger.debug("No seed data configured")

	def run_script(self, sql: str) -> None:
		"""Execute a multi-statement SQL script on this adapter's connection."""
		# Literal % in a script must not be parsed as a placeholder
		self.connection.exec_driver_sql(sql, execution_options={"no_parameters": True})

	def each(self, tenants: Iterable[str] | None = None) -> Iterator[str]:
		"""Yield each tenant while switched into it."""
		for tenant in (self.registry.tenants() if tenants is None else tenants):
			with self.scoped(tenant):
				yield tenant

	def process_excluded_models(self) -> None:
		for model in self.registry.excluded_model_classes():
			self.process_excluded_model(model)

	@abstractmethod
	def process_excluded_model(self, model: Any) -> None:
		"""Pin ``model`` to the default schema regardless of tenant."""
		...

	@abstractmethod
	def import_database_schema(self) -> None:
		"""Populate the structure of the current (freshly created) tenant."""
		...

	# Strategy hooks

	@abstractmethod
	def _connect_to_new(self, tenant: str | None) -> None:
		...

	@abstractmethod
	def _create_tenant(self, tenant: str) -> None:
		...

	def _active(self) -> Any:
		"""Raw tenant value to restore after a scoped switch."""
		current = self.current()
		return None if current == self.default_tenant else current

	def _restore(self, previous: Any) -> None:
		self.switch(previous)
