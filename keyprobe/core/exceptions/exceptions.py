from enum import Enum


class FailureKind(str, Enum):
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    DECODING = "decoding"
    SEMANTIC = "semantic"


class AppError(Exception):
    """Base class for all application-level errors."""
    pass


class ProbeError(AppError):
    """Base for errors that end a probe. Each one maps to a failure kind."""
    kind: FailureKind

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(ProbeError):
    kind = FailureKind.CONFIGURATION


class TransportError(ProbeError):
    kind = FailureKind.TRANSPORT

    def __init__(self, detail: str, timeout: bool = False):
        self.timeout = timeout
        prefix = "timeout" if timeout else "API request failed"
        super().__init__(f"{prefix}: {detail}")


class ProtocolError(ProbeError):
    kind = FailureKind.PROTOCOL

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API error (status {status_code}): {body}")


class DecodingError(ProbeError):
    kind = FailureKind.DECODING

    def __init__(self, detail: str):
        super().__init__(f"failed to decode response: {detail}")


class SemanticError(ProbeError):
    kind = FailureKind.SEMANTIC
