# (c) Copyright Datacraft, 2026
"""
Implicit tenant scoping for the single schema strategy.

Adds a tenant column filter to ORM statements against tenant models and
stamps the tenant id on new rows, using the tenant id of the current
context.
"""
import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from .context import get_current_tenant_id, is_multi_tenant_disabled
from .registry import TenantRegistry

logger = logging.getLogger(__name__)


class TenantScoping:
	"""Session event listeners scoping tenant models to the current tenant."""

	def __init__(self, registry: TenantRegistry, session_class: Any = Session):
		self.models = tuple(registry.tenant_model_classes())
		self.column = registry.tenant_column
		self.session_class = session_class

	def _active_tenant_id(self) -> Any:
		if is_multi_tenant_disabled():
			return None
		return get_current_tenant_id()

	def add_criteria(self, state: ORMExecuteState) -> None:
		if not self.models:
			return
		if not (state.is_select or state.is_update or state.is_delete):
			return
		if state.is_column_load or state.is_relationship_load:
			return
		tenant_id = self._active_tenant_id()
		if tenant_id is None:
			return
		state.statement = state.statement.options(*[
			with_loader_criteria(
				model,
				getattr(model, self.column) == tenant_id,
				include_aliases=True,
			)
			for model in self.models
		])

	def stamp_new_rows(self, session: Session, flush_context: Any, instances: Any) -> None:
		tenant_id = self._active_tenant_id()
		if tenant_id is None:
			return
		for obj in session.new:
			if isinstance(obj, self.models) and getattr(obj, self.column, None) is None:
				setattr(obj, self.column, tenant_id)

	def install(self) -> "TenantScoping":
		event.listen(self.session_class, "do_orm_execute", self.add_criteria)
		event.listen(self.session_class, "before_flush", self.stamp_new_rows)
		logger.debug(f"Tenant scoping installed for {len(self.models)} model(s)")
		return self

	def remove(self) -> None:
		event.remove(self.session_class, "do_orm_execute", self.add_criteria)
		event.remove(self.session_class, "before_flush", self.stamp_new_rows)


def install_tenant_scoping(registry: TenantRegistry, session_class: Any = Session) -> TenantScoping:
	return TenantScoping(registry, session_class).install()
