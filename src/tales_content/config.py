"""Configuration settings for the Tales content pipeline."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Primary content-addressed store (NFT.Storage)
    nft_storage_key: str = ""
    nft_storage_api_url: str = "https://api.nft.storage"

    # Redundancy pinning (Pinata)
    pinata_api_key: str = ""
    pinata_secret_api_key: str = ""
    pinata_api_url: str = "https://api.pinata.cloud"

    # Retrieval gateways, highest priority first
    gateway_hosts: list[str] = Field(
        default_factory=lambda: ["ipfs.io", "nftstorage.link", "gateway.pinata.cloud"]
    )

    # URI scheme returned to callers (ipfs://<cid>)
    content_scheme: str = "ipfs"

    # ── Content limits ───────────────────────────────────────────────────────
    # Max UTF-8 size of a record's text body
    content_max_text_bytes: int = 100_000

    # Text bodies larger than this are gzip+base64 encoded before upload
    content_compression_threshold: int = 1000

    # ── Retry / backoff ──────────────────────────────────────────────────────
    # Attempts per remote write (store and pin are budgeted separately)
    content_max_retries: int = 3

    # Base delay; the wait after failed attempt n (1-based) is retry_delay_ms * 2**(n-1)
    content_retry_delay_ms: int = 1000

    # When False, a pin that fails after all retries is logged and the
    # primary URI is still returned.
    pin_required: bool = False

    # HTTP
    http_timeout_s: float = 30.0
    log_api_calls: bool = True


settings = Settings()
