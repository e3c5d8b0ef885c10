# (c) Copyright Datacraft, 2026
"""Tenancy settings configuration."""
from enum import Enum
from pathlib import Path

from pydantic import PostgresDsn, Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TenancyStrategy(str, Enum):
	"""Tenant isolation strategy."""
	DISABLED = "disabled"
	SCHEMA = "schema"
	SQL_CLONE = "sql_clone"
	SINGLE_SCHEMA = "single_schema"


class Settings(BaseSettings):
	db_url: PostgresDsn
	log_config: Path | None = None

	# Tenants known to the registry
	tenant_names: list[str] = Field(default_factory=list)
	default_schema: str = 'public'
	persistent_schemas: list[str] = Field(default_factory=list)
	excluded_models: list[str] = Field(default_factory=list)

	# Strategy flags; an explicit strategy wins over the flags
	strategy: TenancyStrategy | None = None
	use_schemas: bool = True
	use_sql: bool = False
	use_single_schema: bool = False

	# Single schema mode
	tenant_models: list[str] = Field(default_factory=list)
	tenant_column: str = 'tenant_id'

	# Environment affixes for schema names
	environment: str = 'development'
	prepend_environment: bool = False
	append_environment: bool = False

	# Seeding
	seed_after_create: bool = False
	seed_data_file: Path | None = None

	# Migrations
	alembic_config: Path = Path("alembic.ini")
	migration_history_tables: list[str] = Field(default_factory=lambda: ['alembic_version'])

	# SQL clone
	pg_dump_path: str = 'pg_dump'

	# Bulk runner
	parallel_migrations: bool = False
	parallel_workers: int = Field(gt=0, default=4)
	worker_stagger_seconds: float = Field(ge=0, default=0.5)
	retry_delay_seconds: float = Field(ge=0, default=1.0)

	@computed_field
	@property
	def sync_db_url(self) -> str:
		url = str(self.db_url)
		if "postgresql+asyncpg://" in url:
			return url.replace("postgresql+asyncpg://", "postgresql+psycopg://", 1)
		elif url.startswith("postgresql://"):
			return url.replace("postgresql://", "postgresql+psycopg://", 1)
		return url

	@computed_field
	@property
	def active_strategy(self) -> TenancyStrategy:
		if self.strategy is not None:
			return self.strategy
		if self.use_single_schema:
			return TenancyStrategy.SINGLE_SCHEMA
		if self.use_schemas and self.use_sql:
			return TenancyStrategy.SQL_CLONE
		if self.use_schemas:
			return TenancyStrategy.SCHEMA
		return TenancyStrategy.DISABLED

	model_config = SettingsConfigDict(
		env_prefix='tenancy_',
		env_file='.env',
		env_file_encoding='utf-8',
		extra='ignore',
	)


_settings: Settings | None = None


def get_settings() -> Settings:
	global _settings
	if _settings is None:
		_settings = Settings()
	return _settings


def reset_settings() -> None:
	"""Drop the cached settings (for testing)."""
	global _settings
	_settings = None
