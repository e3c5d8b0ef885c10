# (c) Copyright Datacraft, 2026
"""
Schema-per-tenant multi-tenancy for SQLAlchemy on PostgreSQL.

Provides tenant switching, schema lifecycle management and bulk
per-tenant operations.
"""
from .adapters import SchemaAdapter, create_adapter
from .errors import (
	CreateTenantError,
	DropTenantError,
	TenancyError,
	TenantExists,
	TenantNotFound,
)
from .registry import MULTI_TENANT_DISABLED, TenantRegistry
from .runner import BulkReport, BulkRunner, Operation
from .tenant import Tenancy, get_tenancy, set_tenancy

__all__ = [
	'SchemaAdapter',
	'create_adapter',
	'CreateTenantError',
	'DropTenantError',
	'TenancyError',
	'TenantExists',
	'TenantNotFound',
	'MULTI_TENANT_DISABLED',
	'TenantRegistry',
	'BulkReport',
	'BulkRunner',
	'Operation',
	'Tenancy',
	'get_tenancy',
	'set_tenancy',
]
