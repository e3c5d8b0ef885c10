# (c) Copyright Datacraft, 2026
"""
Schema-per-tenant adapter that clones the template schema.

Instead of replaying every migration, the structure of the default
schema is dumped with pg_dump and replayed inside the new schema,
together with the migration history rows.
"""
import logging
import re
from typing import Any, Iterable

from pgtenancy.dump import PgDump
from pgtenancy.errors import TenancyError

from .schema import SchemaPerTenantAdapter, quote_schema

logger = logging.getLogger(__name__)


def _blacklist(default_schema: str) -> list[re.Pattern]:
	schema = re.escape(default_schema)
	return [
		re.compile(r"SET search_path", re.I),
		re.compile(r"set_config\('search_path'", re.I),
		re.compile(r"SET lock_timeout", re.I),
		re.compile(r"SET idle_in_transaction_session_timeout", re.I),
		re.compile(r"SET transaction_timeout", re.I),
		re.compile(r"SET row_security", re.I),
		re.compile(r"SET default_table_access_method", re.I),
		re.compile(rf'^\s*CREATE SCHEMA\s+"?{schema}"?\s*;', re.I),
		re.compile(rf'^\s*COMMENT ON SCHEMA\s+"?{schema}"?\s', re.I),
		# psql meta-commands such as \restrict emitted by newer pg_dump
		re.compile(r"^\s*\\"),
	]


def swap_schema_qualifier(
	sql: str,
	tenant: str,
	default_schema: str,
	keep_tables: Iterable[str] = (),
) -> str:
	"""
	Rewrite ``default.`` qualifiers to the tenant schema, except for ``keep_tables``.

	Both the bare and the double quoted form of the default schema are
	matched. The rewrite is textual: a qualifier inside a string literal
	is rewritten as well, which is what sequence references such as
	``nextval('public.seq')`` need, and so is one inside a comment.
	"""
	keep = set(keep_tables)
	bare = re.escape(default_schema)
	quoted = re.escape(quote_schema(default_schema))
	qualifier = re.compile(rf'(?:(?<![\w."]){bare}|(?<![\w.]){quoted})\.("?)(\w+)')

	def replace(match: re.Match) -> str:
		if match.group(2) in keep:
			return match.group(0)
		return f"{quote_schema(tenant)}.{match.group(1)}{match.group(2)}"

	return qualifier.sub(replace, sql)


def patch_search_path(
	sql: str,
	tenant: str,
	default_schema: str,
	keep_tables: Iterable[str] = (),
) -> str:
	"""
	Make a pg_dump script target ``tenant``.

	Statements that would override the search path or fail on other
	server versions are removed, and a single search path statement for
	``[tenant, default_schema]`` is put in front.
	"""
	blacklist = _blacklist(default_schema)
	sql = swap_schema_qualifier(sql, tenant, default_schema, keep_tables)
	lines = [
		line for line in sql.split("\n")
		if not any(pattern.search(line) for pattern in blacklist)
	]
	search_path = f"SET search_path = {quote_schema(tenant)}, {quote_schema(default_schema)};"
	return "\n".join([search_path, *lines])


class SqlCloneAdapter(SchemaPerTenantAdapter):
	"""Schema-per-tenant strategy populated by dump and restore."""

	def __init__(self, *args: Any, pg_dump: PgDump | None = None, **kwargs: Any):
		super().__init__(*args, **kwargs)
		self._pg_dump = pg_dump

	@property
	def pg_dump(self) -> PgDump:
		if self._pg_dump is None:
			if self.engine is None:
				raise TenancyError("SqlCloneAdapter needs an engine or a PgDump instance")
			self._pg_dump = PgDump(self.engine.url, executable=self.registry.pg_dump_path)
		return self._pg_dump

	def import_database_schema(self) -> None:
		self.clone_schema()
		self.copy_migration_history()

	def excluded_table_names(self) -> list[str]:
		return [model.__table__.name for model in self.registry.excluded_model_classes()]

	def patch(self, sql: str) -> str:
		return patch_search_path(
			sql,
			self.current(),
			self.default_tenant,
			keep_tables=self.excluded_table_names(),
		)

	def clone_schema(self) -> None:
		"""Copy the default schema's structure into the current schema."""
		logger.info(f"Cloning schema {self.default_tenant} into {self.current()}")
		dump = self.pg_dump.dump_schema(self.default_tenant, self.excluded_table_names())
		self.run_script(self.patch(dump))

	def copy_migration_history(self) -> None:
		"""Copy migration bookkeeping rows so the schema reports its version."""
		tables = self.registry.migration_history_tables
		if not tables:
			return
		logger.info(f"Copying migration history {list(tables)} into {self.current()}")
		dump = self.pg_dump.dump_data(self.default_tenant, tables)
		self.run_script(self.patch(dump))
