from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Zoopla listings API ---
    # Send: ?api_key=<key> on every request
    ZOOPLA_API_KEY: str = ""
    ZOOPLA_BASE_URL: str = "https://api.zoopla.co.uk/api/v1/"

    ZOOPLA_HTTP_TIMEOUT_S: float = 30
    ZOOPLA_VERIFY_SSL: bool = True
    ZOOPLA_USER_AGENT: str = "listingwatch/0.1"

    # --- Stream tuning ---
    STREAM_INTERVAL_S: float = 60  # one minute
    STREAM_DISCARD_INITIAL: bool = False

    LOG_LEVEL: str = "INFO"


settings = Settings()
