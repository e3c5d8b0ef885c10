# (c) Copyright Datacraft, 2026
"""Celery tasks for bulk tenant operations."""
import logging

from celery import shared_task

from .runner import BulkRunner, Operation
from .tenant import get_tenancy

logger = logging.getLogger(__name__)


def _run(operation: Operation, tenants: list[str] | None = None, **kwargs) -> dict:
	logger.info(f"Running task: tenancy.{operation.value}")
	return BulkRunner(get_tenancy()).run(operation, tenants=tenants, **kwargs).to_dict()


@shared_task(name="tenancy.create")
def create_tenants(tenants: list[str] | None = None) -> dict:
	return _run(Operation.CREATE, tenants)


@shared_task(name="tenancy.drop")
def drop_tenants(tenants: list[str] | None = None) -> dict:
	return _run(Operation.DROP, tenants)


@shared_task(name="tenancy.migrate")
def migrate_tenants(tenants: list[str] | None = None) -> dict:
	return _run(Operation.MIGRATE, tenants)


@shared_task(name="tenancy.seed")
def seed_tenants(tenants: list[str] | None = None) -> dict:
	return _run(Operation.SEED, tenants)


@shared_task(name="tenancy.rollback")
def rollback_tenants(tenants: list[str] | None = None, step: int = 1) -> dict:
	return _run(Operation.ROLLBACK, tenants, step=step)


@shared_task(name="tenancy.migrate_up")
def migrate_up_tenants(version: str | None = None, tenants: list[str] | None = None) -> dict:
	return _run(Operation.MIGRATE_UP, tenants, version=version)


@shared_task(name="tenancy.migrate_down")
def migrate_down_tenants(version: str | None = None, tenants: list[str] | None = None) -> dict:
	return _run(Operation.MIGRATE_DOWN, tenants, version=version)


@shared_task(name="tenancy.redo")
def redo_tenants(version: str | None = None, tenants: list[str] | None = None) -> dict:
	return _run(Operation.REDO, tenants, version=version)
