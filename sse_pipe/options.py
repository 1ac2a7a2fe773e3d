"""Resolved runtime configuration.

``ConnectionOptions`` is built once from the command line and never changes
afterwards; every stage receives it read-only.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ConfigError

RESPONSE_LIMIT = 8 * 1024 * 1024
MAX_EVENT_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ConnectionOptions:
    url: str
    insecure: bool = False
    ssl_cert: Optional[str] = None
    ca_info: Optional[str] = None
    verbosity: int = 0
    limit: int = 0
    command: Tuple[str, ...] = ()
    response_limit: int = RESPONSE_LIMIT
    max_event_size: int = MAX_EVENT_SIZE

    @property
    def verify(self):
        """Value for ``requests``' ``verify``: a CA bundle path or a bool."""
        if self.insecure:
            return False
        return self.ca_info or True


def validate_options(options: ConnectionOptions) -> ConnectionOptions:
    """Check option combinations that argparse cannot express.

    Raises ConfigError on the first problem found.
    """
    if not options.url:
        raise ConfigError("missing URL")
    if not options.insecure and not options.url.startswith("https:"):
        raise ConfigError("Insecure connections not allowed, use -i, if necessary.")
    if options.limit < 0:
        raise ConfigError(f"event limit must not be negative: {options.limit}")
    if options.response_limit <= 0:
        raise ConfigError(f"response limit must be positive: {options.response_limit}")
    if options.max_event_size <= 0:
        raise ConfigError(f"max event size must be positive: {options.max_event_size}")
    return options


def from_args(args) -> ConnectionOptions:
    """Build validated options from an ``argparse.Namespace``."""
    options = ConnectionOptions(
        url=args.url,
        insecure=args.insecure,
        ssl_cert=args.cert,
        ca_info=args.ca,
        verbosity=args.verbose,
        limit=args.limit,
        command=tuple(args.command),
        response_limit=args.response_limit,
        max_event_size=args.max_event_size,
    )
    return validate_options(options)
