"""Error types raised by the pipeline stages.

Every ``SSEPipeError`` is fatal: ``cli.main`` logs it and exits with code 1.
``EventLimitReached`` is the one graceful stop and maps to exit code 0.
"""


class SSEPipeError(Exception):
    exit_code = 1


class TransportError(SSEPipeError):
    """The request could not be completed (network, TLS, retries exhausted)."""


class ProtocolError(SSEPipeError):
    """The server answered, but not the way an event stream must."""


class EventTooLarge(ProtocolError):
    """A single in-progress event grew beyond the configured bound."""


class ResourceError(SSEPipeError):
    """Pipes or child processes could not be created."""


class ConfigError(SSEPipeError):
    pass


class EventLimitReached(Exception):
    exit_code = 0

    def __init__(self, count):
        super().__init__(f"event limit of {count} reached")
        self.count = count
