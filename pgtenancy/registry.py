# (c) Copyright Datacraft, 2026
"""
Tenant registry.

Immutable snapshot of the tenancy configuration read by the adapter
factory and the bulk runner.
"""
import importlib
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection

from .config import Settings, TenancyStrategy
from .errors import InvalidTenantName

logger = logging.getLogger(__name__)

# Returned by the single schema strategy while scoping is disabled
MULTI_TENANT_DISABLED = "MULTI_TENANT_DISABLED"

_SCHEMA_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")

TenantNames = Sequence[str] | Callable[[], Sequence[str]]


def default_schema_exists(conn: Connection, schema_name: str) -> bool:
	"""Check whether a schema exists."""
	result = conn.execute(
		text(
			"SELECT EXISTS(SELECT 1 FROM information_schema.schemata "
			"WHERE schema_name = :schema)"
		),
		{"schema": schema_name},
	)
	return bool(result.scalar())


def _identity(value: Any) -> Any:
	return value


def _name_of(value: Any) -> str | None:
	return None if value is None else str(value)


def resolve_model(model: Any) -> Any:
	"""Resolve a dotted path such as ``app.models.Country`` to its class."""
	if not isinstance(model, str):
		return model
	module_name, _, attr = model.rpartition(".")
	if not module_name:
		raise ValueError(f"Model path must be dotted: {model}")
	return getattr(importlib.import_module(module_name), attr)


def validate_schema_name(tenant: str) -> str:
	if not tenant or not _SCHEMA_NAME_RE.match(tenant):
		raise InvalidTenantName(tenant)
	return tenant


@dataclass(frozen=True)
class TenantRegistry:
	"""Tenants and tenancy options known to the application."""
	tenant_names: TenantNames = field(default_factory=tuple)
	default_schema: str = "public"
	persistent_schemas: tuple[str, ...] = ()
	excluded_models: tuple[Any, ...] = ()
	tenant_models: tuple[Any, ...] = ()
	tenant_column: str = "tenant_id"
	strategy: TenancyStrategy = TenancyStrategy.SCHEMA

	environment: str = "development"
	prepend_environment: bool = False
	append_environment: bool = False

	seed_after_create: bool = False
	seed_data_file: str | None = None
	migration_history_tables: tuple[str, ...] = ("alembic_version",)
	pg_dump_path: str = "pg_dump"

	parallel: bool = False
	workers: int = 1
	stagger_delay: float = 0.5
	retry_delay: float = 1.0

	schema_exists: Callable[[Connection, str], bool] = default_schema_exists
	compute_tenant_name: Callable[[Any], str | None] = _name_of
	compute_tenant_id: Callable[[Any], Any] = _identity

	def __post_init__(self):
		if not callable(self.tenant_names):
			names = tuple(self.tenant_names)
			self._check_names(names)
			object.__setattr__(self, "tenant_names", names)
		for attr in ("persistent_schemas", "excluded_models", "tenant_models", "migration_history_tables"):
			object.__setattr__(self, attr, tuple(getattr(self, attr)))

	@property
	def uses_schemas(self) -> bool:
		return self.strategy in (TenancyStrategy.SCHEMA, TenancyStrategy.SQL_CLONE)

	def _check_names(self, names: Sequence[str]) -> None:
		if len(set(names)) != len(names):
			raise ValueError(f"Duplicate tenant names in registry: {list(names)}")
		for name in names:
			if name == MULTI_TENANT_DISABLED:
				raise InvalidTenantName(name)
			if self.uses_schemas:
				validate_schema_name(name)

	def tenants(self) -> list[str]:
		"""Current tenant list; evaluated on each call when a callable was given."""
		if callable(self.tenant_names):
			names = list(self.tenant_names())
			self._check_names(names)
			return names
		return list(self.tenant_names)

	def excluded_model_classes(self) -> list[Any]:
		return [resolve_model(m) for m in self.excluded_models]

	def tenant_model_classes(self) -> list[Any]:
		return [resolve_model(m) for m in self.tenant_models]

	@classmethod
	def from_settings(cls, settings: Settings, **overrides: Any) -> "TenantRegistry":
		"""Build a registry from application settings."""
		values: dict[str, Any] = dict(
			tenant_names=settings.tenant_names,
			default_schema=settings.default_schema,
			persistent_schemas=settings.persistent_schemas,
			excluded_models=settings.excluded_models,
			tenant_models=settings.tenant_models,
			tenant_column=settings.tenant_column,
			strategy=settings.active_strategy,
			environment=settings.environment,
			prepend_environment=settings.prepend_environment,
			append_environment=settings.append_environment,
			seed_after_create=settings.seed_after_create,
			seed_data_file=str(settings.seed_data_file) if settings.seed_data_file else None,
			migration_history_tables=settings.migration_history_tables,
			pg_dump_path=settings.pg_dump_path,
			parallel=settings.parallel_migrations,
			workers=settings.parallel_workers,
			stagger_delay=settings.worker_stagger_seconds,
			retry_delay=settings.retry_delay_seconds,
		)
		values.update(overrides)
		logger.debug(f"Tenant registry strategy: {values['strategy']}")
		return cls(**values)


def tenant_names_from_table(
	conn_factory: Callable[[], Any],
	table: str,
	column: str,
	schema: str = "public",
) -> Callable[[], list[str]]:
	"""
	Build a tenant name provider backed by a table column.

	The query runs every time the registry is asked for its tenants.
	"""
	validate_schema_name(schema)
	validate_schema_name(table)
	validate_schema_name(column)

	def provider() -> list[str]:
		with conn_factory() as conn:
			result = conn.execute(
				text(f'SELECT "{column}" FROM "{schema}"."{table}" ORDER BY "{column}"')
			)
			return [row[0] for row in result.fetchall()]

	return provider
