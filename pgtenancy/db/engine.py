import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from pgtenancy.config import Settings, get_settings

logger = logging.getLogger(__name__)

_engine: Engine | None = None


def create_tenancy_engine(settings: Settings | None = None) -> Engine:
	settings = settings or get_settings()
	# Workers each hold a connection for their whole run
	return create_engine(
		settings.sync_db_url,
		pool_pre_ping=True,
		pool_size=max(5, settings.parallel_workers),
	)


def get_engine() -> Engine:
	global _engine
	if _engine is None:
		_engine = create_tenancy_engine()
	return _engine


def dispose_engine() -> None:
	global _engine
	if _engine is not None:
		_engine.dispose()
		_engine = None
