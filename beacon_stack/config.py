"""
Configuration module for beacon-stack.

Environment variable settings for the command line tool. The assembly core
never reads these itself; callers pass explicit values into it.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .binding import PLATFORM_MAX_TIMEOUT_SECONDS
from .policy import DEFAULT_APPROVED_BUCKET_PREFIX, PermissionScope
from .target import DeploymentTarget

# ============================================================
# Environment Configuration
# ============================================================

ENV_PREFIX = "BEACON_STACK_"

# Logging
LOG_LEVEL = os.getenv("BEACON_STACK_LOG_LEVEL", "INFO")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value == "":
        return default
    return value


def log_json() -> bool:
    """JSON log lines unless BEACON_STACK_LOG_JSON is falsy."""
    return (_env("LOG_JSON", "true") or "").lower() in ("1", "true", "yes")


def max_timeout_seconds() -> int:
    """
    Organization limit on function timeouts.

    Capped at the platform maximum; a larger value is ignored.
    """
    raw = _env("MAX_TIMEOUT_SECONDS")
    if raw is None:
        return PLATFORM_MAX_TIMEOUT_SECONDS
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"BEACON_STACK_MAX_TIMEOUT_SECONDS must be an integer, got '{raw}'")
    return min(value, PLATFORM_MAX_TIMEOUT_SECONDS)


def permission_scope() -> PermissionScope:
    """Permission scope with the approved bucket prefix from the environment."""
    return PermissionScope(
        approved_bucket_prefix=_env("APPROVED_BUCKET_PREFIX", DEFAULT_APPROVED_BUCKET_PREFIX)
    )


def default_target(fallback: Optional[DeploymentTarget] = None) -> DeploymentTarget:
    """
    Deployment target from BEACON_STACK_ACCOUNT / BEACON_STACK_REGION.

    Falls back to the given target, then to the stock profile target. Both
    variables have to be set for the environment to take effect.
    """
    account = _env("ACCOUNT")
    region = _env("REGION")
    if account and region:
        return DeploymentTarget(account=account, region=region)
    if account or region:
        raise ValueError("BEACON_STACK_ACCOUNT and BEACON_STACK_REGION must be set together")
    if fallback is not None:
        return fallback

    from .profiles import ELSA_DATA_BEACON_TARGET
    return ELSA_DATA_BEACON_TARGET


# ============================================================
# Stack definition files
# ============================================================

def load_json(path: str) -> Dict[str, Any]:
    """Load a JSON document from disk."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_json(data: Dict[str, Any], path: str) -> None:
    """Write a JSON document, creating parent directories."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
        f.write("\n")


# ============================================================
# Feature Flags
# ============================================================

def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("BEACON_STACK_DEBUG", "").lower() in ("1", "true", "yes")
