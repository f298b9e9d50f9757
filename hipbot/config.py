"""hipbot configuration management."""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class HipbotSettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Connection identity
    jid: Optional[str] = Field(default=None, description="Bot JID, e.g. 123_456@chat.hipchat.com")
    password: Optional[str] = Field(default=None, description="Account password")
    host: Optional[str] = Field(default=None, description="Server host (SRV lookup if unset)")
    port: int = Field(default=5222, description="Server port")
    chat_host: str = Field(default="chat.hipchat.com", description="Private chat domain for bare user names")
    conference_host: str = Field(default="conf.hipchat.com", description="Group chat (MUC) domain for bare room names")

    # Presence
    status: str = Field(default="", description="Status text broadcast with initial presence")
    nickname: Optional[str] = Field(default=None, description="Room nickname (defaults to vCard name)")
    rooms: list[str] = Field(default_factory=list, description="Rooms to join once online")
    accept_invites: bool = Field(default=True, description="Join rooms the bot is invited to")
    group_reply_to_room: bool = Field(
        default=False,
        description="Answer group messages in the room (default: privately to the speaker)",
    )

    # Timing
    keepalive_interval: float = Field(default=30.0, description="Seconds between keepalive messages")
    correlation_timeout: Optional[float] = Field(
        default=None,
        description="Expire pending replies after N seconds (None = wait forever)",
    )

    # Directory behaviour
    reset_directory_on_reconnect: bool = Field(default=False, description="Forget contacts when online fires again")
    fetch_profiles: bool = Field(default=False, description="Query the profile of every roster contact")

    # Session/user stores
    store_backend: str = Field(default="memory", description="'memory' or 'postgres'")
    database_url: Optional[str] = Field(default=None, description="PostgreSQL DSN for the postgres backend")

    model_config = {"env_prefix": "HIPBOT_", "env_file": ".env", "extra": "ignore"}


def load_settings(**overrides) -> HipbotSettings:
    """Load settings from environment."""
    settings = HipbotSettings(**overrides)

    import logging
    logger = logging.getLogger("hipbot.config")
    if not settings.jid or not settings.password:
        logger.warning("HIPBOT_JID or HIPBOT_PASSWORD is not set, the bot will not be able to log in.")
    if settings.store_backend == "postgres" and not settings.database_url:
        logger.warning("store_backend is 'postgres' but HIPBOT_DATABASE_URL is not set.")

    return settings
