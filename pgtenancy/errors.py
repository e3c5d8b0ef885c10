# (c) Copyright Datacraft, 2026
"""Tenancy error taxonomy and error classification."""
from enum import Enum

from sqlalchemy import exc as sa_exc


class TenancyError(Exception):
	"""Base class for tenancy errors."""
	pass


class TenantNotFound(TenancyError):
	"""Raised when a tenant (or its schema) does not exist."""

	def __init__(self, tenant: str | None, message: str | None = None):
		self.tenant = tenant
		super().__init__(message or f"Tenant not found: {tenant}")


class TenantExists(TenancyError):
	"""Raised when creating a tenant that is already present."""

	def __init__(self, tenant: str, message: str | None = None):
		self.tenant = tenant
		super().__init__(message or f"Tenant already exists: {tenant}")


class CreateTenantError(TenancyError):
	"""Tenant provisioning failed."""

	def __init__(self, tenant: str, cause: Exception | None = None):
		self.tenant = tenant
		self.cause = cause
		super().__init__(f"Error while creating tenant {tenant}: {cause}")


class DropTenantError(TenancyError):
	"""Tenant removal failed."""

	def __init__(self, tenant: str, cause: Exception | None = None):
		self.tenant = tenant
		self.cause = cause
		super().__init__(f"Error while dropping tenant {tenant}: {cause}")


class InvalidTenantName(TenancyError, ValueError):
	"""Tenant name cannot be used as a schema name."""

	def __init__(self, tenant: str):
		self.tenant = tenant
		super().__init__(f"Invalid tenant name: {tenant!r}")


class DumpError(TenancyError):
	"""pg_dump exited with a non-zero status."""

	def __init__(self, returncode: int, stderr: str = ""):
		self.returncode = returncode
		self.stderr = stderr
		super().__init__(f"pg_dump failed with exit code {returncode}: {stderr.strip()}")


class MissingVersionError(TenancyError, ValueError):
	"""A bulk operation needs a migration version and none was given."""

	def __init__(self, operation: str):
		self.operation = operation
		super().__init__(f"Operation '{operation}' requires a version")


class ErrorKind(str, Enum):
	"""How the bulk runner treats a failure."""
	TRANSIENT = "transient"
	TENANT_NOT_FOUND = "tenant_not_found"
	TENANT_EXISTS = "tenant_exists"
	FAILED = "failed"

	@property
	def retryable(self) -> bool:
		return self is ErrorKind.TRANSIENT


_TRANSIENT_MARKERS = (
	"timeout",
	"timed out",
	"could not connect",
	"connection refused",
	"server closed the connection",
	"connection is closed",
	"terminating connection",
)


def _is_transient_db_error(exc: Exception) -> bool:
	message = str(exc).lower()
	return any(marker in message for marker in _TRANSIENT_MARKERS)


def classify_error(exc: BaseException) -> ErrorKind:
	"""Map an exception raised by a per-tenant operation to an ErrorKind."""
	if isinstance(exc, TenantNotFound):
		return ErrorKind.TENANT_NOT_FOUND
	if isinstance(exc, TenantExists):
		return ErrorKind.TENANT_EXISTS
	if isinstance(exc, (CreateTenantError, DropTenantError)) and exc.cause is not None:
		if classify_error(exc.cause) is ErrorKind.TRANSIENT:
			return ErrorKind.TRANSIENT
		return ErrorKind.FAILED
	if isinstance(exc, TenancyError) and exc.__cause__ is not None:
		if classify_error(exc.__cause__) is ErrorKind.TRANSIENT:
			return ErrorKind.TRANSIENT
		return ErrorKind.FAILED
	if isinstance(exc, (TimeoutError, sa_exc.TimeoutError, sa_exc.DisconnectionError)):
		return ErrorKind.TRANSIENT
	if isinstance(exc, sa_exc.OperationalError) and _is_transient_db_error(exc):
		return ErrorKind.TRANSIENT
	return ErrorKind.FAILED
