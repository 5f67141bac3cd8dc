from __future__ import annotations

import logging

LOGGER = logging.getLogger("fblogin")
APP_VERSION = "0.1.0"
APP_NAME = "fblogin"

REQUIRED_ENV = ("FB_CLIENT_ID", "FB_APP_SECRET")
REDACTED_QUERY_PARAMS = {"access_token", "client_secret", "code"}
