from __future__ import annotations


class HandshakeError(RuntimeError):
    code = "handshake_failed"
    status_code = 500

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class ConfigurationError(HandshakeError):
    code = "configuration_error"


class CsrfValidationError(HandshakeError):
    code = "csrf_validation_failed"
    status_code = 400


class ProviderCommunicationError(HandshakeError):
    code = "provider_error"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        provider_status: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.provider_status = provider_status
        self.detail = detail


class SessionEstablishmentError(HandshakeError):
    code = "session_error"


class PendingRequestLookupError(HandshakeError):
    code = "pending_request_not_found"


class PendingRequestStoreError(HandshakeError):
    code = "pending_request_failed"


class ProviderDeniedError(HandshakeError):
    code = "provider_denied"
    status_code = 400


class InvalidCallbackError(HandshakeError):
    code = "invalid_request"
    status_code = 400
