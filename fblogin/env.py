from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from auth.config import DEFAULT_CALLBACK_PATH, DEFAULT_STEP_TIMEOUT_SECONDS, HandshakeConfig

from .constants import APP_NAME, LOGGER, REQUIRED_ENV


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv_env(key: str) -> list[str]:
    raw = os.getenv(key, "")
    if not raw.strip():
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path, override=True)


def validate_env() -> None:
    missing = [key for key in REQUIRED_ENV if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(
            f"Missing required environment variables for {APP_NAME}: {', '.join(missing)}"
        )

    if get_env_int("FB_PENDING_TTL_SECONDS", 600) <= 0:
        raise RuntimeError("FB_PENDING_TTL_SECONDS must be positive.")


def setup_logging() -> bool:
    verbose = is_truthy(os.getenv("FB_LOGIN_VERBOSE"))
    if verbose:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return verbose


def load_handshake_config(*, verbose: bool = False) -> HandshakeConfig:
    return HandshakeConfig(
        client_id=os.getenv("FB_CLIENT_ID", "").strip(),
        app_secret=os.getenv("FB_APP_SECRET", "").strip(),
        callback_path=os.getenv("FB_LOGIN_CALLBACK_PATH", DEFAULT_CALLBACK_PATH).strip(),
        verbose=verbose,
        step_timeout_seconds=get_env_float(
            "FB_STEP_TIMEOUT_SECONDS", DEFAULT_STEP_TIMEOUT_SECONDS
        ),
    )
