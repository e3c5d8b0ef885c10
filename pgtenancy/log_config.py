# (c) Copyright Datacraft, 2026
"""Logging configuration from a YAML dictConfig file."""
import logging
from logging.config import dictConfig
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


def configure_logging(path: Path | None) -> bool:
	"""Apply the logging config at ``path`` if it exists. Returns True if applied."""
	if path is None:
		return False
	path = Path(path)
	if not (path.exists() and path.is_file()):
		logger.debug(f"Logging config {path} not found, keeping defaults")
		return False
	with open(path, "r") as stream:
		config = yaml.load(stream, Loader=yaml.FullLoader)
	dictConfig(config)
	return True
