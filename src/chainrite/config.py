"""
Runtime settings.

Values come from the process environment, optionally seeded from
``~/.chainrite/.env``. Nothing here is ever compiled in: the RPC endpoint has a
public default, everything secret (``PRIVATE_KEY``) is read only by
``sigil.eth.load_private_key``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

CHAINRITE_DIR = Path.home() / ".chainrite"
CHAINRITE_ENV = CHAINRITE_DIR / ".env"

DEFAULT_RPC_URL = "https://ethereum-sepolia-rpc.publicnode.com"


@dataclass(frozen=True)
class Settings:
    rpc_url: str = DEFAULT_RPC_URL
    rpc_timeout: float = 30.0
    rpc_retries: int = 3
    poll_interval: float = 2.0
    confirm_timeout: float = 180.0
    gas_margin: float = 1.2
    recipient: Optional[str] = None


def _number(name: str, default: float, cast=float):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return cast(default)
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """
    Build ``Settings`` from the environment.

    Args:
        env_path: .env file to load first (default: ~/.chainrite/.env).
                  Existing environment variables win over the file.

    Raises:
        ConfigError: If a numeric setting cannot be parsed
    """
    env_path = env_path or CHAINRITE_ENV
    if env_path.exists():
        load_dotenv(env_path, override=False)

    gas_margin = _number("CHAINRITE_GAS_MARGIN", 1.2)
    if gas_margin < 1.0:
        raise ConfigError(f"CHAINRITE_GAS_MARGIN must be >= 1.0, got {gas_margin}")
    poll_interval = _number("CHAINRITE_POLL_INTERVAL", 2.0)
    if poll_interval <= 0:
        raise ConfigError(f"CHAINRITE_POLL_INTERVAL must be > 0, got {poll_interval}")

    return Settings(
        rpc_url=os.environ.get("ETH_RPC_URL") or DEFAULT_RPC_URL,
        rpc_timeout=_number("CHAINRITE_RPC_TIMEOUT", 30.0),
        rpc_retries=_number("CHAINRITE_RPC_RETRIES", 3, int),
        poll_interval=poll_interval,
        confirm_timeout=_number("CHAINRITE_CONFIRM_TIMEOUT", 180.0),
        gas_margin=gas_margin,
        recipient=os.environ.get("CHAINRITE_RECIPIENT") or None,
    )
