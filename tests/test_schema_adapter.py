# (c) Copyright Datacraft, 2026
"""Tests for the schema-per-tenant adapter."""
import pytest
from sqlalchemy import Column, Integer, String
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base

from pgtenancy.adapters import AdapterState, SchemaPerTenantAdapter, create_adapter
from pgtenancy.errors import (
	CreateTenantError,
	DropTenantError,
	ErrorKind,
	InvalidTenantName,
	TenancyError,
	TenantExists,
	TenantNotFound,
	classify_error,
)

Base = declarative_base()


class Country(Base):
	__tablename__ = "countries"
	id = Column(Integer, primary_key=True)
	name = Column(String(100))


@pytest.fixture
def adapter(registry, connection, migrator):
	return create_adapter(registry, migrator=migrator, connection=connection)


def test_setup_starts_in_default_state(adapter, connection):
	assert adapter.state == AdapterState.DEFAULT
	assert adapter.current() == "public"
	assert connection.search_path == '"public", "shared"'


def test_uninitialized_before_setup(registry, connection):
	adapter = SchemaPerTenantAdapter(registry, connection=connection)
	assert adapter.state == AdapterState.UNINITIALIZED


def test_create_succeeds_once(adapter, connection, migrator):
	adapter.create("acme")

	assert "acme" in connection.schemas
	assert migrator.calls == [("run_all", "acme", None)]
	assert adapter.current() == "public"

	with pytest.raises(TenantExists):
		adapter.create("acme")


def test_create_rejects_invalid_schema_name(adapter):
	with pytest.raises(InvalidTenantName):
		adapter.create("acme; DROP TABLE users")


def test_create_wraps_import_failure(adapter, migrator):
	def broken(conn, schema):
		raise RuntimeError("migration exploded")
	migrator.run_all = broken

	with pytest.raises(CreateTenantError) as exc_info:
		adapter.create("acme")

	assert exc_info.value.tenant == "acme"
	assert isinstance(exc_info.value.cause, RuntimeError)
	assert adapter.current() == "public"


def test_switch_sets_search_path_tenant_first(adapter, connection):
	connection.schemas.add("acme")

	adapter.switch("acme")

	assert adapter.current() == "acme"
	assert adapter.state == AdapterState.TENANT_ACTIVE
	assert connection.search_path == '"acme", "shared"'


def test_switch_to_missing_tenant_raises_and_keeps_context(adapter, connection):
	connection.schemas.add("acme")
	adapter.switch("acme")

	with pytest.raises(TenantNotFound) as exc_info:
		adapter.switch("nope")

	assert '"nope"' in str(exc_info.value)
	assert '"nope", "shared"' in str(exc_info.value)
	assert adapter.current() == "acme"


def test_switch_translates_driver_errors(adapter, connection):
	connection.fail_on = "schema_exists"
	with pytest.raises(TenantNotFound):
		adapter.switch("acme")


@pytest.mark.parametrize("prior", [None, "globex"])
def test_switch_none_resets(adapter, connection, prior):
	connection.schemas.update({"acme", "globex"})
	if prior:
		adapter.switch(prior)

	adapter.switch(None)

	assert adapter.current() == "public"
	assert connection.search_path == '"public", "shared"'


def test_scoped_restores_after_normal_return(adapter, connection):
	connection.schemas.update({"acme", "globex"})
	adapter.switch("globex")

	with adapter.scoped("acme"):
		assert adapter.current() == "acme"

	assert adapter.current() == "globex"
	assert connection.search_path == '"globex", "shared"'


def test_scoped_restores_after_exception(adapter, connection):
	connection.schemas.add("acme")

	with pytest.raises(ZeroDivisionError):
		with adapter.scoped("acme"):
			1 / 0

	assert adapter.current() == "public"


def test_scoped_restores_after_early_exit(adapter, connection):
	connection.schemas.update({"acme", "globex"})
	adapter.switch("globex")

	def first_match():
		for tenant in ("acme",):
			with adapter.scoped(tenant):
				return adapter.current()

	assert first_match() == "acme"
	assert adapter.current() == "globex"


def test_scoped_failed_switch_keeps_prior_tenant(adapter, connection):
	connection.schemas.add("globex")
	adapter.switch("globex")

	with pytest.raises(TenantNotFound):
		with adapter.scoped("missing"):
			pass

	assert adapter.current() == "globex"


def test_scoped_falls_back_to_default_when_prior_was_dropped(adapter, connection):
	connection.schemas.update({"acme", "globex"})
	adapter.switch("globex")

	with adapter.scoped("acme"):
		connection.schemas.discard("globex")

	assert adapter.current() == "public"


def test_drop_missing_tenant(adapter):
	with pytest.raises(TenantNotFound):
		adapter.drop("nope")


def test_drop_then_switch_fails(adapter, connection):
	adapter.create("acme")

	adapter.drop("acme")

	assert "acme" not in connection.schemas
	assert 'DROP SCHEMA "acme" CASCADE' in connection.statements
	with pytest.raises(TenantNotFound):
		adapter.switch("acme")


def test_drop_active_tenant_resets(adapter, connection):
	adapter.create("acme")
	adapter.switch("acme")

	adapter.drop("acme")

	assert adapter.current() == "public"


def test_drop_wraps_database_errors(adapter, connection):
	connection.schemas.add("acme")
	connection.fail_on = "DROP SCHEMA"

	with pytest.raises(DropTenantError) as exc_info:
		adapter.drop("acme")

	assert exc_info.value.tenant == "acme"
	assert exc_info.value.cause is not None


def test_drop_refuses_default_schema(adapter):
	with pytest.raises(DropTenantError):
		adapter.drop("public")


def test_callbacks_run_around_switch_and_create(adapter, connection):
	events = []
	adapter.add_callback("switch", "before", lambda a, t: events.append(("before_switch", t, a.current())))
	adapter.add_callback("switch", "after", lambda a, t: events.append(("after_switch", t, a.current())))
	adapter.add_callback("create", "before", lambda a, t: events.append(("before_create", t)))
	adapter.add_callback("create", "after", lambda a, t: events.append(("after_create", t)))

	adapter.create("acme")

	assert events[0] == ("before_create", "acme")
	assert ("before_switch", "acme", "public") in events
	assert ("after_switch", "acme", "acme") in events
	assert events[-1] == ("after_create", "acme")


def test_unknown_callback_rejected(adapter):
	with pytest.raises(ValueError):
		adapter.add_callback("drop", "before", lambda a, t: None)


def test_environmentify(make_registry, connection, migrator):
	registry = make_registry(environment="test", prepend_environment=True)
	adapter = create_adapter(registry, migrator=migrator, connection=connection)

	adapter.create("acme")

	assert "test_acme" in connection.schemas
	assert adapter.environmentify("test_acme") == "test_acme"
	adapter.switch("acme")
	assert adapter.current() == "test_acme"


def test_append_environment(make_registry, connection):
	registry = make_registry(environment="prod", append_environment=True)
	adapter = create_adapter(registry, connection=connection)

	assert adapter.environmentify("acme") == "acme_prod"
	assert adapter.environmentify("public") == "public"


def test_excluded_models_pinned_to_default_schema(make_registry, connection):
	Country.__table__.schema = None
	registry = make_registry(excluded_models=(Country,))
	adapter = create_adapter(registry, connection=connection)
	connection.schemas.update({"acme", "globex"})

	assert Country.__table__.schema == "public"
	for tenant in ("acme", "globex"):
		with adapter.scoped(tenant):
			assert Country.__table__.schema == "public"


def test_excluded_models_accept_dotted_paths(make_registry, connection):
	Country.__table__.schema = None
	registry = make_registry(excluded_models=(f"{__name__}.Country",))

	create_adapter(registry, connection=connection)

	assert Country.__table__.schema == "public"


def test_each_visits_tenants_and_restores(adapter, connection):
	connection.schemas.update({"acme", "globex", "initech"})

	seen = [(tenant, adapter.current()) for tenant in adapter.each()]

	assert seen == [("acme", "acme"), ("globex", "globex"), ("initech", "initech")]
	assert adapter.current() == "public"


def test_seed_uses_seeder_callable(make_registry, connection):
	seeded = []
	adapter = create_adapter(make_registry(), connection=connection, seeder=lambda a: seeded.append(a.current()))
	connection.schemas.add("acme")

	with adapter.scoped("acme"):
		adapter.seed()

	assert seeded == ["acme"]


def test_seed_after_create_runs_in_new_tenant(make_registry, connection, migrator, tmp_path):
	seed_file = tmp_path / "seeds.sql"
	seed_file.write_text("INSERT INTO plans (name) VALUES ('free');")
	registry = make_registry(seed_after_create=True, seed_data_file=str(seed_file))
	adapter = create_adapter(registry, connection=connection, migrator=migrator)
	seeded_in = []
	adapter.add_callback("switch", "after", lambda a, t: seeded_in.append(a.current()))

	adapter.create("acme")

	assert connection.batches == ["INSERT INTO plans (name) VALUES ('free');"]
	assert "acme" in seeded_in


def test_seed_file_runs_without_parameters(make_registry, connection, tmp_path):
	seed_file = tmp_path / "seeds.sql"
	seed_file.write_text("INSERT INTO plans (name, discount) VALUES ('promo', '10%');")
	connection.schemas.add("acme")
	adapter = create_adapter(make_registry(seed_data_file=str(seed_file)), connection=connection)

	with adapter.scoped("acme"):
		adapter.seed()

	assert connection.batches == ["INSERT INTO plans (name, discount) VALUES ('promo', '10%');"]
	assert connection.batch_options == [{"no_parameters": True}]


def test_scoped_keeps_block_error_when_connection_dies(adapter, connection):
	connection.schemas.add("acme")

	with pytest.raises(ValueError, match="boom"):
		with adapter.scoped("acme"):
			connection.dead = True
			raise ValueError("boom")

	assert adapter.current() == "public"


def test_scoped_wraps_driver_error_when_restore_fails(adapter, connection):
	connection.schemas.add("acme")

	with pytest.raises(TenancyError) as exc_info:
		with adapter.scoped("acme"):
			connection.dead = True

	assert isinstance(exc_info.value.__cause__, OperationalError)
	assert classify_error(exc_info.value) == ErrorKind.TRANSIENT
