"""
FormPilot Engine Options

Runtime settings of a FormEngine. Defaults are suitable for serving;
every setting can be overridden from the environment:

    FORMPILOT_FAILURE_POLICY       open | closed | raise   (default open)
    FORMPILOT_MAX_CONDITION_DEPTH  integer                 (default 32)
    FORMPILOT_STRICT_VERSION       true | false            (default true)
    FORMPILOT_LOG_LEVEL            logging level name      (default INFO)
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .exceptions import ConfigurationError
from .models import FailurePolicy


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    text = raw.strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        message=f"{name} must be a boolean, got '{raw}'",
        details={"variable": name, "value": raw},
    )


@dataclass(frozen=True)
class EngineOptions:
    """
    Engine settings.

    Attributes:
        failure_policy: Outcome of a condition that faults
        max_condition_depth: Deepest condition tree accepted at load
        strict_version: Reject packs whose schema_version differs
        log_level: Level used by configure_logging()
    """
    failure_policy: FailurePolicy = FailurePolicy.OPEN
    max_condition_depth: int = 32
    strict_version: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.max_condition_depth < 1:
            raise ConfigurationError(
                message="max_condition_depth must be at least 1",
                details={"max_condition_depth": self.max_condition_depth},
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineOptions":
        """
        Build options from FORMPILOT_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ (for tests)

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ

        policy_raw = env.get("FORMPILOT_FAILURE_POLICY", FailurePolicy.OPEN.value)
        try:
            failure_policy = FailurePolicy(policy_raw.strip().lower())
        except ValueError:
            raise ConfigurationError(
                message=f"FORMPILOT_FAILURE_POLICY must be one of "
                        f"{[p.value for p in FailurePolicy]}, got '{policy_raw}'",
                details={"variable": "FORMPILOT_FAILURE_POLICY", "value": policy_raw},
            ) from None

        depth_raw = env.get("FORMPILOT_MAX_CONDITION_DEPTH", "32")
        try:
            max_depth = int(depth_raw)
        except ValueError:
            raise ConfigurationError(
                message=f"FORMPILOT_MAX_CONDITION_DEPTH must be an integer, got '{depth_raw}'",
                details={"variable": "FORMPILOT_MAX_CONDITION_DEPTH", "value": depth_raw},
            ) from None

        return cls(
            failure_policy=failure_policy,
            max_condition_depth=max_depth,
            strict_version=_parse_bool(
                "FORMPILOT_STRICT_VERSION", env.get("FORMPILOT_STRICT_VERSION", "true")
            ),
            log_level=env.get("FORMPILOT_LOG_LEVEL", "INFO").upper(),
        )
