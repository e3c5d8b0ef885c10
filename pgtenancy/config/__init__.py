# (c) Copyright Datacraft, 2026
"""Configuration module for pgtenancy."""
from .settings import Settings, TenancyStrategy, get_settings, reset_settings

__all__ = [
	'Settings',
	'TenancyStrategy',
	'get_settings',
	'reset_settings',
]
