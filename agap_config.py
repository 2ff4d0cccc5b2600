# Configuration surface for the rolling-horizon gate assignment
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from agap_errors import ConfigError

INFEASIBLE_POLICIES = ("fail", "skip")


@dataclass(frozen=True)
class FixedWindowPolicy:
    """
    Windows of `flights_per_save + lookahead` flights. Only the first
    `flights_per_save` flights of each window are locked.
    """
    flights_per_save: int = 30
    lookahead: int = 30

    def __post_init__(self):
        if self.flights_per_save < 1:
            raise ConfigError("flights_per_save must be at least 1")
        if self.lookahead < 0:
            raise ConfigError("lookahead cannot be negative")


@dataclass(frozen=True)
class AdaptiveWindowPolicy:
    """
    Windows grow until they hold `target_connections` tier-1 connection pairs.
    A remainder of at most `min_remainder` flights is solved as one window.
    Every window is locked in full.
    """
    target_connections: int = 8
    min_remainder: int = 70

    def __post_init__(self):
        if self.target_connections < 0:
            raise ConfigError("target_connections cannot be negative")
        if self.min_remainder < 0:
            raise ConfigError("min_remainder cannot be negative")


WindowPolicy = Union[FixedWindowPolicy, AdaptiveWindowPolicy]


@dataclass(frozen=True)
class AssignmentConfig:
    # objective components
    departing: bool = True
    arriving: bool = True
    connecting: bool = True

    # minutes added to every exit time before overlap checks
    buffer_time: int = 0
    # max minutes between an arrival's exit and the same tail's departure entry
    same_gate_threshold: int = 120

    connection_weight: float = 1.0
    # multiple of connection_weight for partners locked in earlier windows
    locked_connection_weight: float = 3.0

    window_policy: WindowPolicy = field(default_factory=FixedWindowPolicy)

    # backend
    time_limit: Optional[float] = None
    mip_gap: Optional[float] = None
    output_flag: int = 0
    log_file: Optional[str] = None
    # directory to write each window model as an .lp file
    model_dir: Optional[str] = None

    on_infeasible: str = "fail"

    def __post_init__(self):
        if self.buffer_time < 0:
            raise ConfigError(f"buffer_time must be >= 0, got {self.buffer_time}")
        if self.same_gate_threshold < 0:
            raise ConfigError(f"same_gate_threshold must be >= 0, got {self.same_gate_threshold}")
        if self.connection_weight < 0 or self.locked_connection_weight < 0:
            raise ConfigError("connection weights cannot be negative")
        if not isinstance(self.window_policy, (FixedWindowPolicy, AdaptiveWindowPolicy)):
            raise ConfigError(f"Unknown window policy {self.window_policy!r}")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ConfigError("time_limit must be positive")
        if self.on_infeasible not in INFEASIBLE_POLICIES:
            raise ConfigError(
                f"on_infeasible must be one of {INFEASIBLE_POLICIES}, got {self.on_infeasible!r}"
            )

    @property
    def locked_connection_factor(self):
        return self.connection_weight * self.locked_connection_weight

    @property
    def objective_terms(self):
        return tuple(name for name in ("departing", "arriving", "connecting") if getattr(self, name))
