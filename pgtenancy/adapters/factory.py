# (c) Copyright Datacraft, 2026
"""Tenant adapter factory."""
from sqlalchemy.engine import Connection, Engine

from pgtenancy.config import TenancyStrategy
from pgtenancy.dump import PgDump
from pgtenancy.migrations import Migrator
from pgtenancy.registry import TenantRegistry

from .base import SchemaAdapter, Seeder


def create_adapter(
	registry: TenantRegistry,
	engine: Engine | None = None,
	migrator: Migrator | None = None,
	seeder: Seeder | None = None,
	pg_dump: PgDump | None = None,
	connection: Connection | None = None,
) -> SchemaAdapter:
	"""Create the adapter for the registry's strategy and set it up.

	Args:
		registry: Tenant registry (selects the strategy)
		engine: Engine the adapter opens its connection from
		migrator: Migration runner used to build and migrate schemas
		seeder: Optional callable that seeds the current tenant
		pg_dump: pg_dump wrapper for the SQL clone strategy
		connection: Use this connection instead of opening one

	Returns:
		Adapter in the default (no tenant) state
	"""
	options = dict(
		engine=engine,
		migrator=migrator,
		seeder=seeder,
		connection=connection,
	)

	if registry.strategy == TenancyStrategy.SINGLE_SCHEMA:
		from .single_schema import SingleSchemaAdapter
		adapter: SchemaAdapter = SingleSchemaAdapter(registry, **options)

	elif registry.strategy == TenancyStrategy.SQL_CLONE:
		from .sql_clone import SqlCloneAdapter
		adapter = SqlCloneAdapter(registry, pg_dump=pg_dump, **options)

	elif registry.strategy == TenancyStrategy.SCHEMA:
		from .schema import SchemaPerTenantAdapter
		adapter = SchemaPerTenantAdapter(registry, **options)

	elif registry.strategy == TenancyStrategy.DISABLED:
		from .default import DefaultAdapter
		adapter = DefaultAdapter(registry, **options)

	else:
		raise ValueError(f"Unknown tenancy strategy: {registry.strategy}")

	return adapter.setup()
