"""
Configuration management for the wallet engine.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cashwallet.constants import (
    DEFAULT_FEE_RATE,
    DEFAULT_SAVE_DELAY,
    DEFAULT_SNAPSHOT_KEY,
    DUST,
    NETWORK_PREFIXES,
)


class WalletSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CASHWALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    network: Literal["mainnet", "chipnet", "testnet"] = "mainnet"

    data_dir: Path = Field(default_factory=lambda: Path.home() / ".cashwallet")
    snapshot_key: str = DEFAULT_SNAPSHOT_KEY
    save_delay: float = Field(default=DEFAULT_SAVE_DELAY, ge=0.0)

    # No fee estimation: flat rate per serialized byte
    fee_rate: int = Field(default=DEFAULT_FEE_RATE, ge=0)
    dust_amount: int = Field(default=DUST, ge=0)

    log_level: str = "INFO"

    @property
    def prefix(self) -> str:
        """CashAddr prefix for the configured network."""
        return NETWORK_PREFIXES[self.network]


def get_settings() -> WalletSettings:
    return WalletSettings()
