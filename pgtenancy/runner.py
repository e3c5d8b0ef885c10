# (c) Copyright Datacraft, 2026
"""
Bulk per-tenant operations.

Applies create, drop, migrate, seed, rollback and friends to every
tenant of the registry, one tenant after the other or through a pool of
worker threads. A failure on one tenant is reported and never stops the
others.
"""
import logging
import queue
import threading
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

from .adapters import SchemaAdapter
from .errors import ErrorKind, MissingVersionError, TenancyError, classify_error
from .migrations import Migrator
from .registry import TenantRegistry
from .tenant import Tenancy

logger = logging.getLogger(__name__)

TenantTask = Callable[[SchemaAdapter, str], None]


class Operation(str, Enum):
	"""Bulk operations."""
	CREATE = "create"
	DROP = "drop"
	MIGRATE = "migrate"
	SEED = "seed"
	ROLLBACK = "rollback"
	MIGRATE_UP = "migrate_up"
	MIGRATE_DOWN = "migrate_down"
	REDO = "redo"


VERSION_REQUIRED = frozenset({Operation.MIGRATE_UP, Operation.MIGRATE_DOWN})


class ResultStatus(str, Enum):
	OK = "ok"
	FAILED = "failed"


@dataclass
class TenantResult:
	"""Outcome of one operation on one tenant."""
	tenant: str
	status: ResultStatus
	kind: ErrorKind | None = None
	error: str | None = None
	attempts: int = 1

	@property
	def ok(self) -> bool:
		return self.status == ResultStatus.OK


@dataclass
class BulkReport:
	"""Outcome of a bulk run."""
	operation: Operation
	results: list[TenantResult] = field(default_factory=list)
	elapsed: float = 0.0

	@property
	def succeeded(self) -> list[str]:
		return [r.tenant for r in self.results if r.ok]

	@property
	def failed(self) -> list[TenantResult]:
		return [r for r in self.results if not r.ok]

	def to_dict(self) -> dict[str, Any]:
		return {
			"operation": self.operation.value,
			"elapsed": self.elapsed,
			"succeeded": self.succeeded,
			"failed": [
				{k: (v.value if isinstance(v, Enum) else v) for k, v in asdict(r).items()}
				for r in self.failed
			],
		}


def _migrator(adapter: SchemaAdapter) -> Migrator:
	if adapter.migrator is None:
		raise TenancyError("No migrator configured")
	return adapter.migrator


def build_task(operation: Operation, version: str | None = None, step: int = 1) -> TenantTask:
	"""Per-tenant callable for ``operation``."""
	if operation in VERSION_REQUIRED and not version:
		raise MissingVersionError(operation.value)

	def create(adapter: SchemaAdapter, tenant: str) -> None:
		adapter.create(tenant)

	def drop(adapter: SchemaAdapter, tenant: str) -> None:
		adapter.drop(tenant)

	def migrate(adapter: SchemaAdapter, tenant: str) -> None:
		with adapter.scoped(tenant):
			_migrator(adapter).run_all(adapter.connection, adapter.current())

	def seed(adapter: SchemaAdapter, tenant: str) -> None:
		with adapter.scoped(tenant):
			adapter.seed()

	def rollback(adapter: SchemaAdapter, tenant: str) -> None:
		with adapter.scoped(tenant):
			_migrator(adapter).rollback(adapter.connection, adapter.current(), step)

	def migrate_up(adapter: SchemaAdapter, tenant: str) -> None:
		with adapter.scoped(tenant):
			_migrator(adapter).up(adapter.connection, adapter.current(), version)

	def migrate_down(adapter: SchemaAdapter, tenant: str) -> None:
		with adapter.scoped(tenant):
			_migrator(adapter).down(adapter.connection, adapter.current(), version)

	def redo(adapter: SchemaAdapter, tenant: str) -> None:
		with adapter.scoped(tenant):
			migrator = _migrator(adapter)
			if version:
				migrator.down(adapter.connection, adapter.current(), version)
				migrator.up(adapter.connection, adapter.current(), version)
			else:
				migrator.rollback(adapter.connection, adapter.current(), 1)
				migrator.run_all(adapter.connection, adapter.current())

	return {
		Operation.CREATE: create,
		Operation.DROP: drop,
		Operation.MIGRATE: migrate,
		Operation.SEED: seed,
		Operation.ROLLBACK: rollback,
		Operation.MIGRATE_UP: migrate_up,
		Operation.MIGRATE_DOWN: migrate_down,
		Operation.REDO: redo,
	}[operation]


class BulkRunner:
	"""Runs one operation over many tenants."""

	def __init__(
		self,
		tenancy: Tenancy,
		registry: TenantRegistry | None = None,
		sleep: Callable[[float], None] = time.sleep,
		clock: Callable[[], float] = time.monotonic,
	):
		self.tenancy = tenancy
		self.registry = registry or tenancy.registry
		self.sleep = sleep
		self.clock = clock

	def run(
		self,
		operation: Operation | str,
		tenants: Iterable[str] | None = None,
		version: str | None = None,
		step: int = 1,
	) -> BulkReport:
		"""
		Apply ``operation`` to ``tenants`` (default: every registry tenant).

		Raises MissingVersionError before touching any tenant when the
		operation needs a version and none was given.
		"""
		operation = Operation(operation)
		task = build_task(operation, version=version, step=step)
		tenant_list = list(tenants) if tenants is not None else self.registry.tenants()

		parallel = self.registry.parallel and self.registry.workers > 1 and len(tenant_list) > 1
		logger.info(
			f"Running {operation.value} on {len(tenant_list)} tenant(s)"
			f"{' in parallel' if parallel else ''}"
		)

		start = self.clock()
		if parallel:
			results = self._run_parallel(task, tenant_list)
		else:
			results = self._run_sequential(task, tenant_list)
		elapsed = self.clock() - start

		report = BulkReport(operation=operation, results=results, elapsed=elapsed)
		logger.info(
			f"{operation.value} finished in {elapsed:.2f}s: "
			f"{len(report.succeeded)} ok, {len(report.failed)} failed"
		)
		return report

	def _attempt(self, task: TenantTask, tenant: str, retry: bool) -> TenantResult:
		attempts = 0
		while True:
			attempts += 1
			try:
				task(self.tenancy.adapter, tenant)
			except Exception as exc:
				kind = classify_error(exc)
				if retry and kind.retryable and attempts == 1:
					logger.warning(f"Transient error on tenant {tenant}, retrying: {exc}")
					# The connection may be dead; retry on a fresh one
					self.tenancy.release()
					self.sleep(self.registry.retry_delay)
					continue
				logger.error(f"Error on tenant {tenant} ({kind.value}): {exc}")
				return TenantResult(
					tenant=tenant,
					status=ResultStatus.FAILED,
					kind=kind,
					error=str(exc),
					attempts=attempts,
				)
			logger.debug(f"Tenant {tenant} done")
			return TenantResult(tenant=tenant, status=ResultStatus.OK, attempts=attempts)

	def _run_sequential(self, task: TenantTask, tenants: list[str]) -> list[TenantResult]:
		return [self._attempt(task, tenant, retry=False) for tenant in tenants]

	def _run_parallel(self, task: TenantTask, tenants: list[str]) -> list[TenantResult]:
		work: queue.Queue[str] = queue.Queue()
		for tenant in tenants:
			work.put(tenant)

		results: list[TenantResult] = []
		results_lock = threading.Lock()

		def worker() -> None:
			try:
				while True:
					try:
						tenant = work.get_nowait()
					except queue.Empty:
						return
					result = self._attempt(task, tenant, retry=True)
					with results_lock:
						results.append(result)
			finally:
				self.tenancy.release()

		threads = []
		for index in range(min(self.registry.workers, len(tenants))):
			if index:
				# Avoid opening every connection at once
				self.sleep(self.registry.stagger_delay)
			thread = threading.Thread(target=worker, name=f"tenancy-worker-{index}")
			thread.start()
			threads.append(thread)

		for thread in threads:
			thread.join()

		order = {tenant: index for index, tenant in enumerate(tenants)}
		results.sort(key=lambda r: order[r.tenant])
		return results
