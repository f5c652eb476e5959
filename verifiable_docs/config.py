"""
config.py - Protocol and runtime settings for verifiable documents
"""
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProtocolSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VDOC_", env_file=".env", extra="ignore")

    # Hashing (must match between issuer and verifier)
    HASH_ALGORITHM: Literal["blake2b-256", "sha256", "sha3-256"] = "blake2b-256"

    # External signer
    SIGNING_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    # Disclosure policy
    MIN_DISCLOSED_STATEMENTS: int = Field(default=1, ge=0)

    # Issuance defaults
    DEFAULT_VALIDITY_DAYS: int = Field(default=365, ge=0)
    DID_METHOD: str = "vdoc"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False


@lru_cache
def get_settings() -> ProtocolSettings:
    """Process-wide default settings (read once from env / .env)"""
    return ProtocolSettings()
