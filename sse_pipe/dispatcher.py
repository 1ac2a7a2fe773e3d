"""Turn parsed events into command runs, stdout echoes and replies."""
import logging
import sys

from .errors import EventLimitReached
from .runner import run_command

log = logging.getLogger(__name__)

ENV_PREFIX = "SSE_"


def build_environment(event) -> dict:
    """Map each header field to an ``SSE_<FIELD>`` variable.

    Field names come straight from the server and are not filtered. The
    data payload is never exported; it goes to the command's stdin.
    """
    return {ENV_PREFIX + name.upper(): value for name, value in event.headers.items()}


def format_event(event) -> bytes:
    """Render ``event`` back into wire shape, blank separator line included."""
    lines = [f"{name}: {value}" for name, value in event.headers.items()]
    if event.has_data:
        lines += [f"data: {line}" for line in event.data.split("\n")]
    return ("\n".join(lines) + "\n\n").encode("utf-8")


def describe(event) -> str:
    event_type = event.headers.get("event") or "event"
    event_id = event.headers.get("id") or "<none>"
    return f"{event_type}:{event_id} ({len(event.data.encode('utf-8'))} byte)"


class Dispatcher:
    def __init__(self, options, runner=run_command, poster=None, out=None):
        self.options = options
        self.runner = runner
        self.poster = poster
        self.out = out
        self.remaining = options.limit
        self.delivered = 0

    def dispatch(self, event):
        """Handle one event completely, reply included.

        Raises EventLimitReached once the configured number of events has
        been delivered.
        """
        log.info("EVENT %s", describe(event))

        if self.options.command:
            result = self.runner(
                self.options.command,
                build_environment(event),
                event.data.encode("utf-8"),
                self.options.response_limit,
            )
            if event.reply and self.poster is not None:
                self.poster.post(event.reply, result.output if result.ok else b"")
        else:
            out = self.out if self.out is not None else sys.stdout.buffer
            out.write(format_event(event))
            out.flush()

        self.delivered += 1
        if self.options.limit:
            self.remaining -= 1
            if self.remaining <= 0:
                raise EventLimitReached(self.options.limit)
