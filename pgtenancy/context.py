# (c) Copyright Datacraft, 2026
"""Tenant context management using contextvars.

Holds the tenant id used by the single schema strategy. Every thread
starts with an empty context, so worker threads never observe each
other's tenant.
"""
import contextvars
from typing import Any

# Context variable for the current tenant id
_current_tenant_id: contextvars.ContextVar[Any] = contextvars.ContextVar(
	"current_tenant_id", default=None
)

# Set while tenant scoping is switched off for the current context
_multi_tenant_disabled: contextvars.ContextVar[bool] = contextvars.ContextVar(
	"multi_tenant_disabled", default=False
)


def get_current_tenant_id() -> Any:
	"""
	Get the current tenant id.

	Returns None if no tenant is active.
	"""
	return _current_tenant_id.get()


def set_current_tenant_id(tenant_id: Any) -> contextvars.Token:
	"""
	Set the tenant id for the current context.

	Returns a token that can be used to reset the context.
	"""
	return _current_tenant_id.set(tenant_id)


def is_multi_tenant_disabled() -> bool:
	return _multi_tenant_disabled.get()


class TenantIdContext:
	"""
	Context manager for temporarily setting the tenant id.

	Example:
		with TenantIdContext(42):
			session.execute(select(Order))
	"""

	def __init__(self, tenant_id: Any):
		self.tenant_id = tenant_id
		self.token: contextvars.Token | None = None

	def __enter__(self) -> "TenantIdContext":
		self.token = set_current_tenant_id(self.tenant_id)
		return self

	def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
		if self.token is not None:
			_current_tenant_id.reset(self.token)


class MultiTenantDisabled:
	"""
	Context manager that switches tenant scoping off.

	Used for system level operations that must see rows of every tenant.
	"""

	def __init__(self):
		self.token: contextvars.Token | None = None

	def __enter__(self) -> "MultiTenantDisabled":
		self.token = _multi_tenant_disabled.set(True)
		return self

	def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
		if self.token is not None:
			_multi_tenant_disabled.reset(self.token)
