
import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class Settings:
    mongo_uri: str
    mongo_db: str
    redis_url: str
    udp_host: str
    udp_port: int
    udp_enabled: bool
    frontend_url: str
    log_level: str
    host: str
    port: int


def get_settings() -> Settings:
    # .env is optional; real environment variables win over it
    load_dotenv(override=False)

    return Settings(
        mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017"),
        mongo_db=os.getenv("MONGO_DB", "wisun_emeter"),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        udp_host=os.getenv("UDP_HOST", "0.0.0.0"),
        udp_port=int(os.getenv("UDP_PORT", "41234")),
        udp_enabled=_as_bool(os.getenv("UDP_ENABLED", "true")),
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
    )
