from __future__ import annotations

from dataclasses import dataclass

from auth.errors import ConfigurationError
from auth.urls import is_callback_path

DEFAULT_CALLBACK_PATH = "/login"
DEFAULT_STEP_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class HandshakeConfig:
    client_id: str
    app_secret: str
    callback_path: str = DEFAULT_CALLBACK_PATH
    verbose: bool = False
    step_timeout_seconds: float = DEFAULT_STEP_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not self.client_id or not self.app_secret:
            raise ConfigurationError("You must specify a Facebook client_id and app_secret.")
        if not is_callback_path(self.callback_path):
            raise ConfigurationError(
                f"callback_path must be an absolute path such as /login, got {self.callback_path!r}."
            )
        if self.step_timeout_seconds <= 0:
            raise ConfigurationError("step_timeout_seconds must be positive.")
