# (c) Copyright Datacraft, 2026
"""Tenancy strategies behind one adapter interface."""
from .base import AdapterState, SchemaAdapter
from .default import DefaultAdapter
from .factory import create_adapter
from .schema import SchemaPerTenantAdapter
from .single_schema import SingleSchemaAdapter
from .sql_clone import SqlCloneAdapter, patch_search_path

__all__ = [
	"AdapterState",
	"SchemaAdapter",
	"DefaultAdapter",
	"SchemaPerTenantAdapter",
	"SqlCloneAdapter",
	"SingleSchemaAdapter",
	"create_adapter",
	"patch_search_path",
]
