from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

DEFAULT_ENV_FILE = ".env"
DEFAULT_ADMIN_URL = "http://localhost:2019"
DEFAULT_SERVER_KEY = "myserver"
DEFAULT_TIMEOUT_S = 10.0
DEFAULT_LISTEN = (":443",)
DEFAULT_REFRESH_INTERVAL_S = 30.0
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FILE_NAME = "caddy-cfg.log"


class ConfigManager:
    """Centralized configuration.

    - Loads `.env` (or `CADDYCFG_ENV_FILE`) best-effort via python-dotenv.
    - Reads runtime config from environment variables.
    - Assigns project defaults consistently.
    """

    @staticmethod
    def _env_str(name: str) -> str | None:
        v = os.getenv(name)
        return v.strip() if v and v.strip() else None

    @staticmethod
    def _env_float(name: str, *, default: float) -> float:
        raw = ConfigManager._env_str(name)
        if raw is None:
            return default
        try:
            v = float(raw)
        except ValueError as e:
            raise ValueError(f"{name} must be a number") from e
        if v <= 0:
            raise ValueError(f"{name} must be > 0")
        return v

    @staticmethod
    def load_dotenv(path: str | None = None) -> None:
        """Load env file into process env.

        A missing file is not an error.
        """
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=path or os.getenv("CADDYCFG_ENV_FILE") or DEFAULT_ENV_FILE)

    @staticmethod
    def admin_url() -> str:
        return ConfigManager._env_str("CADDYCFG_ADMIN_URL") or DEFAULT_ADMIN_URL

    @staticmethod
    def server_key() -> str:
        return ConfigManager._env_str("CADDYCFG_SERVER_KEY") or DEFAULT_SERVER_KEY

    @staticmethod
    def timeout_s() -> float:
        return ConfigManager._env_float("CADDYCFG_TIMEOUT_S", default=DEFAULT_TIMEOUT_S)

    @staticmethod
    def listen() -> tuple[str, ...]:
        raw = ConfigManager._env_str("CADDYCFG_LISTEN")
        if raw is None:
            return DEFAULT_LISTEN
        parts = tuple(p for part in raw.split(",") if (p := part.strip()))
        return parts or DEFAULT_LISTEN

    @staticmethod
    def refresh_interval_s() -> float:
        return ConfigManager._env_float("CADDYCFG_REFRESH_INTERVAL_S", default=DEFAULT_REFRESH_INTERVAL_S)

    @staticmethod
    def log_level() -> str:
        v = os.getenv("CADDYCFG_LOG_LEVEL")
        return (v or DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL

    @staticmethod
    def log_file() -> str | None:
        return ConfigManager._env_str("CADDYCFG_LOG_FILE")

    @staticmethod
    def _parse_log_level(level: str) -> int:
        normalized = (level or DEFAULT_LOG_LEVEL).strip().upper()
        logging_level = getattr(logging, normalized, None)
        if not isinstance(logging_level, int):
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return logging_level

    @staticmethod
    def _resolve_log_file_path(value: str | os.PathLike[str] | None) -> Path | None:
        if value is None:
            return None
        raw = str(value).strip()
        if not raw:
            return None

        p = Path(os.path.expanduser(raw))
        # A directory gets the default file name inside it.
        if p.exists() and p.is_dir():
            return p / DEFAULT_LOG_FILE_NAME
        if raw.endswith(("/", os.sep)):
            return p / DEFAULT_LOG_FILE_NAME
        return p

    @staticmethod
    def configure_logging(
        console_level: str,
        *,
        log_file: str | os.PathLike[str] | None = None,
        file_level: str | None = None,
    ) -> None:
        """Configure logging.

        Always logs to stderr. If log_file is set, also logs to that file.
        The console and file handlers can have different levels.
        """

        console_logging_level = ConfigManager._parse_log_level(console_level)
        file_logging_level = (
            ConfigManager._parse_log_level(file_level) if (file_level is not None and str(file_level).strip()) else None
        )
        file_path = ConfigManager._resolve_log_file_path(log_file)

        console_formatter = logging.Formatter(
            "%(asctime)s %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        file_formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

        root = logging.getLogger()
        for h in list(root.handlers):
            root.removeHandler(h)

        min_level = console_logging_level
        if file_logging_level is not None:
            min_level = min(min_level, file_logging_level)

        root.setLevel(min_level)

        console_handler = logging.StreamHandler(stream=sys.stderr)
        console_handler.setLevel(console_logging_level)
        console_handler.setFormatter(console_formatter)
        root.addHandler(console_handler)

        if file_path is not None:
            try:
                file_path.parent.mkdir(parents=True, exist_ok=True)
                fh = logging.FileHandler(file_path, encoding="utf-8")
            except OSError as e:
                root.warning("Failed to enable file logging to %s (%s)", file_path, str(e))
            else:
                fh.setLevel(file_logging_level if file_logging_level is not None else console_logging_level)
                fh.setFormatter(file_formatter)
                root.addHandler(fh)

        # Keep noisy HTTP libs at WARNING or higher.
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    @staticmethod
    def get_logger(name: str) -> logging.Logger:
        return logging.getLogger(name)
