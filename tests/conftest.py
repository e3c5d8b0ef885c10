# (c) Copyright Datacraft, 2026
"""Pytest fixtures for tenancy tests."""
import pytest

from pgtenancy.config import TenancyStrategy
from pgtenancy.context import set_current_tenant_id
from pgtenancy.registry import TenantRegistry

from fakes import FakeConnection, FakeMigrator, fake_schema_exists


@pytest.fixture(autouse=True)
def clear_tenant_context():
	set_current_tenant_id(None)
	yield
	set_current_tenant_id(None)


@pytest.fixture
def connection():
	return FakeConnection()


@pytest.fixture
def migrator():
	return FakeMigrator()


@pytest.fixture
def make_registry():
	def _make(**kwargs):
		kwargs.setdefault("strategy", TenancyStrategy.SCHEMA)
		kwargs.setdefault("schema_exists", fake_schema_exists)
		return TenantRegistry(**kwargs)
	return _make


@pytest.fixture
def registry(make_registry):
	return make_registry(
		tenant_names=["acme", "globex", "initech"],
		persistent_schemas=("shared",),
	)
