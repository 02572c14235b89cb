"""
Configuration package
"""

from .anomaly_settings import AnomalyConfig, ConfigStore, get_config_store
from .logging_config import setup_logging, get_logger

__all__ = ['AnomalyConfig', 'ConfigStore', 'get_config_store', 'setup_logging', 'get_logger']
