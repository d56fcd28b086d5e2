"""
Runtime configuration
Business policy constants and deployment settings, loaded once at startup
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Dict, Optional, Tuple


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuaranteeTier:
    min_imbalance: float
    threshold_minutes: int
    premium_multiplier: float


@dataclass(frozen=True)
class ThresholdBase:
    instant: float
    soft_commitment: float
    compensation_trigger: float


@dataclass(frozen=True)
class DispatchPolicy:
    cell_size_deg: float = 0.027
    km_per_degree: float = 111.0
    zone_radius_km: float = 3.0

    supply_capacity: int = 10
    demand_capacity: int = 20
    recent_window_minutes: int = 60
    day_window_hours: int = 24
    default_wait_minutes: float = 5.0

    # TODO: replace with a measured value once ride alignment telemetry is recorded
    avg_alignment_score: float = 0.75

    # Checked top to bottom, first exceeded tier wins
    guarantee_tiers: Tuple[GuaranteeTier, ...] = (
        GuaranteeTier(min_imbalance=0.5, threshold_minutes=25, premium_multiplier=1.4),
        GuaranteeTier(min_imbalance=0.3, threshold_minutes=20, premium_multiplier=1.2),
    )
    oversupply_imbalance: float = -0.3
    oversupply_threshold_minutes: int = 10
    oversupply_multiplier: float = 0.9
    default_threshold_minutes: int = 15
    default_multiplier: float = 1.0

    base_guarantee_amount: float = 15.0

    low_density_max_drivers: int = 10
    low_density_max_hourly: int = 5
    high_density_min_drivers: int = 100
    high_density_min_hourly: int = 50

    threshold_bases: Tuple[Tuple[str, ThresholdBase], ...] = (
        ('low_density', ThresholdBase(0.70, 0.55, 0.40)),
        ('default', ThresholdBase(0.85, 0.70, 0.50)),
        ('high_density', ThresholdBase(0.90, 0.75, 0.55)),
    )
    pressure_imbalance: float = 0.3
    pressure_relief: float = 0.05

    flow_margin: float = 0.1

    def with_overrides(self, **overrides) -> 'DispatchPolicy':
        return replace(self, **overrides)


_SCALAR_TYPES = (int, float)


def _policy_from_env(environ) -> DispatchPolicy:
    policy = DispatchPolicy()
    overrides = {}

    for f in fields(DispatchPolicy):
        raw = environ.get(f"CITYBRAIN_{f.name.upper()}")
        if raw is None:
            continue
        current = getattr(policy, f.name)
        if not isinstance(current, _SCALAR_TYPES):
            raise ValueError(f"CITYBRAIN_{f.name.upper()} cannot be set from the environment")
        try:
            overrides[f.name] = type(current)(raw)
        except ValueError:
            raise ValueError(f"Invalid value for CITYBRAIN_{f.name.upper()}: {raw!r}")

    return policy.with_overrides(**overrides) if overrides else policy


def get_database_url(environ=None) -> Optional[str]:
    environ = os.environ if environ is None else environ
    db_url = environ.get("DATABASE_URL")
    if db_url:
        if db_url.startswith('https://'):
            db_url = db_url.replace('https://', 'postgresql://', 1)
        elif db_url.startswith('postgres://'):
            db_url = db_url.replace('postgres://', 'postgresql://', 1)
    return db_url


@dataclass(frozen=True)
class Settings:
    database_url: str
    secret_key: str
    policy: DispatchPolicy = field(default_factory=DispatchPolicy)
    log_level: str = 'INFO'
    engine_options: Dict = field(default_factory=lambda: {
        "pool_recycle": 300,
        "pool_pre_ping": True,
    })

    @classmethod
    def from_env(cls, environ=None) -> 'Settings':
        environ = os.environ if environ is None else environ

        database_url = get_database_url(environ)
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set. Please configure your database.")

        secret_key = environ.get("FLASK_SECRET_KEY")
        if not secret_key:
            import secrets
            secret_key = secrets.token_hex(32)
            logger.warning("FLASK_SECRET_KEY not set. Using generated key for this session.")

        return cls(
            database_url=database_url,
            secret_key=secret_key,
            policy=_policy_from_env(environ),
            log_level=environ.get("CITYBRAIN_LOG_LEVEL", "INFO").upper(),
        )
