"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class WatchStateSettings(BaseSettings):
    data_dir: Path = Path(".watchstate")
    store_key: str = "video-progress"
    log_level: str = "INFO"

    # Metadata service
    metadata_url: str = ""
    metadata_api_key: str = ""
    metadata_timeout: float = 15.0

    # Reconciliation
    year_tolerance: int = 1  # search results within +-N years are accepted
    reconcile_delay: float = 0.0  # seconds to wait after load before reconciling

    model_config = {"env_prefix": "WATCHSTATE_"}


settings = WatchStateSettings()
