# (c) Copyright Datacraft, 2026
"""Adapter used when tenancy is disabled."""
import logging
from typing import Any

from .base import SchemaAdapter

logger = logging.getLogger(__name__)


class DefaultAdapter(SchemaAdapter):
	"""Every operation is an identity; the default tenant is always current."""

	def current(self) -> str:
		return self.default_tenant

	def _connect_to_new(self, tenant: str | None) -> None:
		pass

	def _create_tenant(self, tenant: str) -> None:
		logger.debug(f"Tenancy disabled, not creating {tenant}")

	def import_database_schema(self) -> None:
		pass

	def drop(self, tenant: str) -> None:
		logger.debug(f"Tenancy disabled, not dropping {tenant}")

	def process_excluded_model(self, model: Any) -> None:
		pass
