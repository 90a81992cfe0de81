from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the Reimager backend."""

    #----------------------------------------------------------
    # Generation provider settings
    #----------------------------------------------------------
    replicate_api_token: SecretStr = Field(
        default=SecretStr(""),
        description="API token for authenticating with Replicate. Generation is refused without it.",
    )
    replicate_model: str = Field(
        default="google/nano-banana",
        description="Replicate model (owner/name) used for both text-to-image and image-to-image.",
    )
    replicate_base_url: str = Field(
        default="https://api.replicate.com/v1",
        description="Base URL of the Replicate HTTP API.",
    )
    replicate_poll_interval: float = Field(
        default=1.0,
        gt=0.0,
        description="Seconds between prediction status checks once the initial wait expires.",
    )
    replicate_timeout: float = Field(
        default=120.0,
        gt=0.0,
        description="Upper bound in seconds for a single prediction to finish.",
    )
    aspect_ratio: str = Field(
        default="1:1",
        description="Aspect ratio requested from the model.",
    )
    output_format: str = Field(
        default="png",
        description="Image format requested from the model.",
    )

    #----------------------------------------------------------
    # Payment settings
    #----------------------------------------------------------
    payment_recipient: str = Field(
        default="0xaf59B12ea11914A0373ffbb13FF8b03F8537C599",
        description="Address receiving the generation fee.",
    )
    payment_amount: Decimal = Field(
        default=Decimal("0.00005"),
        gt=0,
        description="Fee charged per generation, in ETH or in token units when a token is configured.",
    )
    payment_token_address: Optional[str] = Field(
        default=None,
        description="ERC-20 contract to pay with. Native ETH is used when unset.",
    )
    payment_token_decimals: int = Field(
        default=6,
        ge=0,
        le=36,
        description="Decimals of the configured payment token.",
    )
    payment_token_symbol: str = Field(
        default="USDC",
        description="Symbol shown in notifications when paying with the configured token.",
    )
    chain_rpc_url: str = Field(
        default="https://mainnet.base.org",
        description="JSON-RPC endpoint the wallet client talks to.",
    )
    chain_id: int = Field(
        default=8453,
        description="Chain id the payment is submitted on (Base mainnet by default).",
    )
    confirmation_poll_interval: float = Field(
        default=1.0,
        gt=0.0,
        description="Seconds to wait between payment confirmation checks.",
    )
    confirmation_max_polls: int = Field(
        default=30,
        ge=1,
        description="Number of confirmation checks before the payment is considered timed out.",
    )

    #----------------------------------------------------------
    # Request settings
    #----------------------------------------------------------
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Largest accepted source image, in bytes.",
    )
    history_capacity: int = Field(
        default=5,
        ge=1,
        description="Number of recent generations kept per wallet.",
    )
    generation_endpoint_url: Optional[str] = Field(
        default=None,
        description="Generation endpoint used by the paid flow. Defaults to this app's own /api/generate.",
    )
    request_timeout: float = Field(
        default=120.0,
        gt=0.0,
        description="Timeout in seconds for calls to the generation endpoint and chain RPC.",
    )
    download_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout in seconds when fetching an image for download.",
    )
    max_download_bytes: int = Field(
        default=25 * 1024 * 1024,
        gt=0,
        description="Largest image body the download action will relay, in bytes.",
    )
    max_sessions: int = Field(
        default=1000,
        ge=1,
        description="Wallet sessions kept in memory; the least recently used idle ones are evicted.",
    )
    log_level: str = Field(
        default="info",
        description="Log level passed to uvicorn.",
    )

    #----------------------------------------------------------
    # Notification settings
    #----------------------------------------------------------
    notification_duration: float = Field(
        default=4.0,
        gt=0.0,
        description="Seconds a success, info or error notification stays visible.",
    )
    confirmation_notification_duration: float = Field(
        default=2.0,
        gt=0.0,
        description="Seconds the payment confirmed notification stays visible.",
    )
    max_notifications: int = Field(
        default=20,
        ge=1,
        description="Most notifications kept per session; the oldest are dropped first.",
    )

    model_config = SettingsConfigDict(
        env_prefix="REIMAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
