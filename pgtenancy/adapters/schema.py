# (c) Copyright Datacraft, 2026
"""
Schema-per-tenant adapter.

Each tenant gets its own schema (namespace) in PostgreSQL, providing
strong data isolation while sharing the same database. Switching
tenants rewrites the connection's search path.
"""
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from pgtenancy.errors import (
	CreateTenantError,
	DropTenantError,
	InvalidTenantName,
	TenancyError,
	TenantExists,
	TenantNotFound,
)
from pgtenancy.registry import resolve_model, validate_schema_name

from .base import SchemaAdapter

logger = logging.getLogger(__name__)


def quote_schema(name: str) -> str:
	return '"' + name.replace('"', '""') + '"'


class SchemaPerTenantAdapter(SchemaAdapter):
	"""Tenancy through one PostgreSQL schema per tenant."""

	def __init__(self, *args: Any, **kwargs: Any):
		super().__init__(*args, **kwargs)
		self._current: str | None = None

	def _open_connection(self) -> Connection:
		# Session level SET search_path must outlive individual transactions
		return self.engine.connect().execution_options(isolation_level="AUTOCOMMIT")

	def current(self) -> str:
		return self._current or self.default_tenant

	def search_path(self, tenant: str | None = None) -> list[str]:
		"""Tenant schema first, then the persistent schemas."""
		path = [tenant or self.default_tenant]
		for schema in self.registry.persistent_schemas:
			if schema not in path:
				path.append(schema)
		return path

	def full_search_path(self, tenant: str | None = None) -> str:
		return ", ".join(quote_schema(s) for s in self.search_path(tenant))

	def _set_search_path(self, path: str) -> None:
		self.connection.execute(text(f"SET search_path TO {path}"))

	def reset(self) -> None:
		self._current = None
		try:
			self._set_search_path(self.full_search_path())
		except SQLAlchemyError as exc:
			raise TenancyError(f"Could not reset search path to {self.default_tenant}: {exc}") from exc

	def schema_exists(self, schema_name: str) -> bool:
		return self.registry.schema_exists(self.connection, schema_name)

	def _connect_to_new(self, tenant: str | None) -> None:
		if tenant is None:
			self.reset()
			return

		schema_name = self.environmentify(tenant)
		attempted = self.full_search_path(schema_name)
		message = f'One of the following schema(s) is invalid: "{schema_name}" {attempted}'
		try:
			validate_schema_name(schema_name)
			if not self.schema_exists(schema_name):
				raise TenantNotFound(tenant, message)
			self._set_search_path(attempted)
		except (SQLAlchemyError, InvalidTenantName) as exc:
			raise TenantNotFound(tenant, message) from exc

		self._current = schema_name

	def _create_tenant(self, tenant: str) -> None:
		schema_name = validate_schema_name(self.environmentify(tenant))
		try:
			if self.schema_exists(schema_name):
				raise TenantExists(tenant)
			self.connection.execute(text(f"CREATE SCHEMA {quote_schema(schema_name)}"))
		except SQLAlchemyError as exc:
			if "already exists" in str(exc):
				raise TenantExists(tenant) from exc
			raise CreateTenantError(tenant, exc) from exc
		logger.info(f"Created schema: {schema_name}")

	def import_database_schema(self) -> None:
		"""Replay every migration inside the current schema."""
		if self.migrator is None:
			raise TenancyError("No migrator configured to build the tenant schema")
		self.migrator.run_all(self.connection, self.current())

	def drop(self, tenant: str) -> None:
		"""
		Drop the tenant schema and everything in it.

		Use with caution - this will delete all data in the schema.
		"""
		schema_name = self.environmentify(tenant)
		if schema_name == self.default_tenant or schema_name in self.registry.persistent_schemas:
			raise DropTenantError(tenant, ValueError(f"Cannot drop shared schema {schema_name}"))

		try:
			validate_schema_name(schema_name)
		except InvalidTenantName as exc:
			raise TenantNotFound(tenant) from exc

		try:
			if not self.schema_exists(schema_name):
				raise TenantNotFound(tenant, f"Cannot drop missing tenant schema: {schema_name}")
			self.connection.execute(text(f"DROP SCHEMA {quote_schema(schema_name)} CASCADE"))
		except SQLAlchemyError as exc:
			raise DropTenantError(tenant, exc) from exc

		if self._current == schema_name:
			self.reset()
		logger.info(f"Dropped schema: {schema_name}")

	def process_excluded_model(self, model: Any) -> None:
		table = resolve_model(model).__table__
		if table.schema != self.default_tenant:
			logger.debug(f"Pinning {table.name} to schema {self.default_tenant}")
			table.schema = self.default_tenant
