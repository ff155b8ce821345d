"""Конфигурация приложения."""
import os
from functools import lru_cache


@lru_cache
def get_config():
    debug = os.environ.get("DEBUG", "0").lower() in ("1", "true", "yes")
    return type("Config", (), {
        "debug": debug,
        "allowed_origins": os.environ.get("ALLOWED_ORIGINS", "*").split(","),
        "host": os.environ.get("HOST", "0.0.0.0"),
        "port": int(os.environ.get("PORT", "5050")),
        "log_level": "DEBUG" if debug else os.environ.get("LOG_LEVEL", "INFO").upper(),
    })()
