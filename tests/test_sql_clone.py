# (c) Copyright Datacraft, 2026
"""Tests for the SQL clone adapter and dump patching."""
import pytest
from sqlalchemy import Column, Integer
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base

from pgtenancy.adapters import SqlCloneAdapter, create_adapter, patch_search_path
from pgtenancy.adapters.sql_clone import swap_schema_qualifier
from pgtenancy.config import TenancyStrategy
from pgtenancy.dump import CommandRunner, PgDump
from pgtenancy.errors import CreateTenantError, DumpError

Base = declarative_base()


class Currency(Base):
	__tablename__ = "currencies"
	id = Column(Integer, primary_key=True)


RAW_SCHEMA_DUMP = """--
-- PostgreSQL database dump
--
\\restrict abc123
SET statement_timeout = 0;
SET lock_timeout = 0;
SET idle_in_transaction_session_timeout = 0;
SELECT pg_catalog.set_config('search_path', '', false);
SET search_path = public, pg_catalog;
CREATE SCHEMA public;
CREATE TABLE public.invoices (
    id integer NOT NULL,
    currency_id integer REFERENCES public.currencies(id)
);
CREATE SEQUENCE public.invoices_id_seq;
ALTER TABLE ONLY public.invoices ALTER COLUMN id SET DEFAULT nextval('public.invoices_id_seq'::regclass);
\\unrestrict abc123
"""

RAW_HISTORY_DUMP = """SET search_path = public, pg_catalog;
INSERT INTO public.alembic_version VALUES ('4f2e1a');
"""


class FakeRunner(CommandRunner):
	def __init__(self, outputs=None, error=None):
		self.outputs = list(outputs or [])
		self.error = error
		self.calls = []

	def run(self, args):
		self.calls.append(list(args))
		if self.error:
			raise self.error
		return self.outputs.pop(0)


def test_patch_replaces_search_path_statement():
	patched = patch_search_path(RAW_SCHEMA_DUMP, "acme", "public")
	lines = patched.split("\n")

	assert lines[0] == 'SET search_path = "acme", "public";'
	assert sum("search_path" in line for line in lines) == 1
	assert not any(line.startswith("SET search_path = public") for line in lines)


def test_patch_removes_session_settings_and_meta_commands():
	patched = patch_search_path(RAW_SCHEMA_DUMP, "acme", "public")

	assert "lock_timeout" not in patched
	assert "idle_in_transaction_session_timeout" not in patched
	assert "CREATE SCHEMA public" not in patched
	assert "\\restrict" not in patched
	assert "\\unrestrict" not in patched
	assert "SET statement_timeout = 0;" in patched


def test_patch_requalifies_objects_into_tenant():
	patched = patch_search_path(RAW_SCHEMA_DUMP, "acme", "public", keep_tables=["currencies"])

	assert 'CREATE TABLE "acme".invoices' in patched
	assert "nextval('\"acme\".invoices_id_seq'::regclass)" in patched
	assert "REFERENCES public.currencies(id)" in patched
	assert "public.invoices" not in patched


def test_patch_leaves_other_schemas_alone():
	sql = "SELECT pg_catalog.now();\nCREATE TABLE public_archive.log (id int);"
	patched = patch_search_path(sql, "acme", "public")

	assert "pg_catalog.now()" in patched
	assert "public_archive.log" in patched


@pytest.fixture
def runner():
	return FakeRunner(outputs=[RAW_SCHEMA_DUMP, RAW_HISTORY_DUMP])


@pytest.fixture
def pg_dump(runner):
	return PgDump(make_url("postgresql+psycopg://app:secret@db:5432/saas"), runner=runner)


@pytest.fixture
def clone_adapter(make_registry, connection, pg_dump):
	Currency.__table__.schema = None
	registry = make_registry(strategy=TenancyStrategy.SQL_CLONE, excluded_models=(Currency,))
	return create_adapter(registry, connection=connection, pg_dump=pg_dump)


def test_factory_selects_sql_clone(clone_adapter):
	assert isinstance(clone_adapter, SqlCloneAdapter)


def test_create_clones_structure_and_history(clone_adapter, connection, runner):
	clone_adapter.create("acme")

	assert "acme" in connection.schemas
	structure_args, history_args = runner.calls
	assert structure_args == [
		"pg_dump", "-s", "-x", "-O", "-n", "public", "-T", "public.currencies", "saas",
	]
	assert history_args == ["pg_dump", "-a", "--inserts", "-t", "public.alembic_version", "saas"]

	structure, history = connection.batches
	assert structure.startswith('SET search_path = "acme", "public";\n')
	assert 'CREATE TABLE "acme".invoices' in structure
	assert history.split("\n") == [
		'SET search_path = "acme", "public";',
		"INSERT INTO \"acme\".alembic_version VALUES ('4f2e1a');",
		"",
	]
	assert clone_adapter.current() == "public"


def test_create_without_history_tables(make_registry, connection):
	runner = FakeRunner(outputs=[RAW_SCHEMA_DUMP])
	registry = make_registry(strategy=TenancyStrategy.SQL_CLONE, migration_history_tables=())
	adapter = create_adapter(
		registry,
		connection=connection,
		pg_dump=PgDump(make_url("postgresql://db/saas"), runner=runner),
	)

	adapter.create("acme")

	assert len(runner.calls) == 1
	assert len(connection.batches) == 1


def test_dump_failure_is_wrapped(make_registry, connection):
	runner = FakeRunner(error=DumpError(1, "permission denied"))
	registry = make_registry(strategy=TenancyStrategy.SQL_CLONE)
	adapter = create_adapter(
		registry,
		connection=connection,
		pg_dump=PgDump(make_url("postgresql://db/saas"), runner=runner),
	)

	with pytest.raises(CreateTenantError) as exc_info:
		adapter.create("acme")

	assert isinstance(exc_info.value.cause, DumpError)
	assert adapter.current() == "public"


def test_scripts_with_percent_signs_run_without_parameters(make_registry, connection):
	dump = (
		"SET search_path = public, pg_catalog;\n"
		"CREATE TABLE public.invoices (\n"
		"    code text CHECK (code LIKE 'INV-%'),\n"
		"    label text DEFAULT format('%s-%s', 'a', 'b')\n"
		");\n"
	)
	runner = FakeRunner(outputs=[dump, RAW_HISTORY_DUMP])
	registry = make_registry(strategy=TenancyStrategy.SQL_CLONE)
	adapter = create_adapter(
		registry,
		connection=connection,
		pg_dump=PgDump(make_url("postgresql://db/saas"), runner=runner),
	)

	adapter.create("acme")

	structure = connection.batches[0]
	assert "LIKE 'INV-%'" in structure
	assert "format('%s-%s', 'a', 'b')" in structure
	assert connection.batch_options == [{"no_parameters": True}, {"no_parameters": True}]


def test_swap_handles_quoted_default_schema():
	sql = (
		'CREATE TABLE "Template".invoices (id int);\n'
		'ALTER TABLE ONLY "Template"."Lines" ADD CONSTRAINT fk FOREIGN KEY (id) REFERENCES "Template".invoices(id);\n'
		'CREATE TABLE "Template_old".log (id int);'
	)

	swapped = swap_schema_qualifier(sql, "acme", "Template")

	assert 'CREATE TABLE "acme".invoices' in swapped
	assert 'ALTER TABLE ONLY "acme"."Lines"' in swapped
	assert 'REFERENCES "acme".invoices(id)' in swapped
	assert '"Template_old".log' in swapped
