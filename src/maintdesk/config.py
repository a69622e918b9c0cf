from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DbConfig:
    host: str
    port: int
    name: str
    user: str
    password: str
    sslmode: str = "disable"
    schema: str = "rems"


@dataclass(frozen=True)
class WebConfig:
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False


@dataclass(frozen=True)
class BusinessConfig:
    default_page_size: int = 20
    max_page_size: int = 100


@dataclass(frozen=True)
class AppConfig:
    name: str
    log_level: str
    log_format: str
    db: DbConfig
    web: WebConfig
    business: BusinessConfig


def load_config(path: str | Path) -> AppConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p.resolve()}")

    try:
        data = tomllib.loads(p.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to read config TOML: {e}") from e

    return parse_config(data)


def parse_config(data: dict) -> AppConfig:
    try:
        app = data["app"]
        db = data["db"]
        web = data.get("web", {})
        business = data.get("business", {})

        log_format = str(app.get("log_format", "standard"))
        if log_format not in ("standard", "json"):
            raise ValueError(f"log_format must be 'standard' or 'json', got {log_format!r}")

        default_page_size = int(business.get("default_page_size", 20))
        max_page_size = int(business.get("max_page_size", 100))
        if not 0 < default_page_size <= max_page_size:
            raise ValueError("business.default_page_size must be between 1 and max_page_size")

        return AppConfig(
            name=str(app.get("name", "MaintDesk")),
            log_level=str(app.get("log_level", "INFO")),
            log_format=log_format,
            db=DbConfig(
                host=str(db["host"]),
                port=int(db.get("port", 5432)),
                name=str(db["name"]),
                user=str(db["user"]),
                password=str(db["password"]),
                sslmode=str(db.get("sslmode", "disable")),
                schema=str(db.get("schema", "rems")),
            ),
            web=WebConfig(
                host=str(web.get("host", "127.0.0.1")),
                port=int(web.get("port", 5000)),
                debug=bool(web.get("debug", False)),
            ),
            business=BusinessConfig(
                default_page_size=default_page_size,
                max_page_size=max_page_size,
            ),
        )
    except KeyError as e:
        raise ConfigError(f"Missing config key: {e}") from e
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid config values: {e}") from e
