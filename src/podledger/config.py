"""Ledger configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from podledger.enums import PodSequenceScope


class PodLedgerConfig(BaseSettings):
    """Runtime config for the delivery ledger service."""

    model_config = SettingsConfigDict(env_prefix="PODLEDGER_")

    database_url: str = "sqlite+aiosqlite:///./podledger.db"
    account_header: str = "X-Account-Id"
    pod_sequence_scope: PodSequenceScope = PodSequenceScope.GLOBAL
    package_reference_attempts: int = Field(default=10, ge=1)
    audit_default_page_size: int = Field(default=50, ge=1)
    audit_max_page_size: int = Field(default=500, ge=1)
    log_level: str = "INFO"
