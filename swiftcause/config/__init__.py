# swiftcause/config/__init__.py
from __future__ import annotations

from .config import BaseConfig, DevelopmentConfig, ProductionConfig, TestingConfig

CONFIG_BY_NAME = {
    "base": BaseConfig,
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}

__all__ = [
    "BaseConfig",
    "CONFIG_BY_NAME",
    "DevelopmentConfig",
    "ProductionConfig",
    "TestingConfig",
]
