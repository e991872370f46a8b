"""Config loading and freezing."""

from coinledger.config.loader import (
    compute_config_hash,
    freeze_config,
    load_config,
    resolve_token,
    serialize_config,
    verify_config_lock,
)
from coinledger.config.models import (
    AppConfig,
    FeedConfig,
    LedgerConfig,
    MonitoringConfig,
    RuntimeConfig,
    StoreConfig,
)

__all__ = [
    "AppConfig",
    "FeedConfig",
    "LedgerConfig",
    "MonitoringConfig",
    "RuntimeConfig",
    "StoreConfig",
    "compute_config_hash",
    "freeze_config",
    "load_config",
    "resolve_token",
    "serialize_config",
    "verify_config_lock",
]
