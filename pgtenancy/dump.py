# (c) Copyright Datacraft, 2026
"""
pg_dump invocation.

The command runner is a port: the SQL clone strategy only talks to a
CommandRunner, so tests can hand it canned dump output.
"""
import logging
import os
import subprocess
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Sequence

from sqlalchemy.engine import URL

from .errors import DumpError

logger = logging.getLogger(__name__)

PG_ENV_VARS = ("PGHOST", "PGPORT", "PGUSER", "PGPASSWORD")

# os.environ is process wide; only one dump may own the PG* variables at a time
_env_lock = threading.Lock()


class CommandRunner(ABC):
	"""Runs an external command and returns its standard output."""

	@abstractmethod
	def run(self, args: Sequence[str]) -> str:
		...


class SubprocessCommandRunner(CommandRunner):
	"""Runs commands with subprocess, inheriting os.environ."""

	def __init__(self, timeout: float | None = None):
		self.timeout = timeout

	def run(self, args: Sequence[str]) -> str:
		logger.debug(f"Running: {' '.join(args)}")
		try:
			result = subprocess.run(
				list(args),
				capture_output=True,
				text=True,
				timeout=self.timeout,
			)
		except subprocess.TimeoutExpired as exc:
			raise DumpError(-1, f"timed out after {exc.timeout}s") from exc
		if result.returncode != 0:
			raise DumpError(result.returncode, result.stderr)
		return result.stdout


def pg_env_from_url(url: URL) -> dict[str, str]:
	"""PG* environment values taken from a connection URL."""
	env = {}
	if url.host:
		env["PGHOST"] = url.host
	if url.port:
		env["PGPORT"] = str(url.port)
	if url.username:
		env["PGUSER"] = str(url.username)
	if url.password:
		env["PGPASSWORD"] = str(url.password)
	return env


@contextmanager
def pg_env(values: dict[str, str]) -> Iterator[None]:
	"""
	Temporarily export PG* variables.

	Prior values are put back (or removed) when the block exits,
	whether or not it raised.
	"""
	with _env_lock:
		saved = {name: os.environ.get(name) for name in PG_ENV_VARS}
		try:
			for name, value in values.items():
				os.environ[name] = value
			yield
		finally:
			for name, value in saved.items():
				if value is None:
					os.environ.pop(name, None)
				else:
					os.environ[name] = value


class PgDump:
	"""Builds and runs pg_dump commands against one database."""

	def __init__(
		self,
		url: URL,
		runner: CommandRunner | None = None,
		executable: str = "pg_dump",
	):
		self.url = url
		self.runner = runner or SubprocessCommandRunner()
		self.executable = executable

	@property
	def dbname(self) -> str:
		return self.url.database or ""

	def _run(self, args: list[str]) -> str:
		with pg_env(pg_env_from_url(self.url)):
			return self.runner.run(args)

	def schema_args(self, schema: str, exclude_tables: Sequence[str] = ()) -> list[str]:
		"""Structure only, no privileges, no ownership."""
		args = [self.executable, "-s", "-x", "-O", "-n", schema]
		for table in exclude_tables:
			args.extend(["-T", f"{schema}.{table}"])
		args.append(self.dbname)
		return args

	def data_args(self, schema: str, tables: Sequence[str]) -> list[str]:
		"""Data only, as INSERT statements, limited to ``tables``."""
		args = [self.executable, "-a", "--inserts"]
		for table in tables:
			args.extend(["-t", f"{schema}.{table}"])
		args.append(self.dbname)
		return args

	def dump_schema(self, schema: str, exclude_tables: Sequence[str] = ()) -> str:
		return self._run(self.schema_args(schema, exclude_tables))

	def dump_data(self, schema: str, tables: Sequence[str]) -> str:
		return self._run(self.data_args(schema, tables))
