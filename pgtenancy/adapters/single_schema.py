# (c) Copyright Datacraft, 2026
"""
Single schema adapter.

All tenants share one schema; rows are told apart by a tenant column.
Switching only changes the tenant id held in the current context.
"""
import logging
from typing import Any

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.schema import sort_tables

from pgtenancy.context import (
	get_current_tenant_id,
	is_multi_tenant_disabled,
	set_current_tenant_id,
)
from pgtenancy.errors import DropTenantError
from pgtenancy.registry import MULTI_TENANT_DISABLED

from .base import SchemaAdapter

logger = logging.getLogger(__name__)


class SingleSchemaAdapter(SchemaAdapter):
	"""Shared schema with implicit tenant scoping."""

	def current(self) -> str:
		if is_multi_tenant_disabled():
			return MULTI_TENANT_DISABLED
		value = get_current_tenant_id()
		if value is None:
			return self.default_tenant
		return self.registry.compute_tenant_name(value)

	def session(self) -> Session:
		# No search path to keep, any pooled connection will do
		return Session(self.engine)

	def _connect_to_new(self, tenant: Any) -> None:
		tenant_id = None if tenant is None else self.registry.compute_tenant_id(tenant)
		logger.debug(f"[SingleSchema] Switch to {tenant} (id={tenant_id})")
		set_current_tenant_id(tenant_id)

	def _active(self) -> Any:
		return get_current_tenant_id()

	def _restore(self, previous: Any) -> None:
		# ``previous`` is already a computed tenant id
		with self._run_callbacks("switch", previous):
			set_current_tenant_id(previous)

	def _create_tenant(self, tenant: str) -> None:
		# Do nothing, rows are created by the application
		pass

	def import_database_schema(self) -> None:
		# Do nothing, schema is shared
		pass

	def process_excluded_model(self, model: Any) -> None:
		# Do nothing, every model already lives in the shared schema
		pass

	def deletion_order(self) -> list[Any]:
		"""Tenant models ordered so that referencing tables come first."""
		models = self.registry.tenant_model_classes()
		by_table = {model.__table__: model for model in models}
		ordered = sort_tables(by_table.keys())
		return [by_table[table] for table in reversed(ordered)]

	def drop(self, tenant: str) -> None:
		"""Delete every row owned by ``tenant`` from every tenant model."""
		column_name = self.registry.tenant_column
		try:
			with self.scoped(tenant):
				tenant_id = get_current_tenant_id()
				with self.session() as session, session.begin():
					for model in self.deletion_order():
						column = getattr(model, column_name)
						result = session.execute(
							delete(model)
							.where(column == tenant_id)
							.execution_options(synchronize_session=False)
						)
						logger.debug(f"Deleted {result.rowcount} row(s) from {model.__table__.name}")
		except SQLAlchemyError as exc:
			raise DropTenantError(tenant, exc) from exc
		logger.info(f"Dropped tenant rows: {tenant}")
