from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    # Any Redis-protocol server (Redis, Valkey)
    redis_url: str = "redis://localhost:6379"
    alpaca_api_key: str = ""
    alpaca_secret_key: str = ""
    alpaca_data_url: str = "https://data.alpaca.markets"
    alpaca_api_url: str = "https://api.alpaca.markets/v2"
    finnhub_api_key: str = ""
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    yahoo_base_url: str = "https://query1.finance.yahoo.com"
    http_timeout_seconds: float = 10.0
    cache_reconnect_interval: float = 30.0
    # TTLs in seconds
    ttl_quote: int = 60
    ttl_profile: int = 86400
    ttl_bars: int = 900
    ttl_search: int = 3600
    ttl_movers: int = 60
    ttl_indices: int = 60
    ttl_details: int = 30
    ttl_holdings: int = 6 * 3600
    ttl_news: int = 900
    max_batch_symbols: int = 50
    log_level: str = "INFO"

settings = Settings()
