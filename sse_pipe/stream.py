"""Connect to the event stream and drive parser and dispatcher from it."""
import logging

from .dispatcher import Dispatcher
from .parser import FrameParser
from .reply import ReplyPoster
from .transport import Transport

log = logging.getLogger(__name__)

EXPECTED_CONTENT_TYPE = "text/event-stream"
STREAM_HEADERS = {"Accept": EXPECTED_CONTENT_TYPE}


def verify_event_stream(response):
    content_type = response.headers.get("Content-Type", "")
    if content_type.startswith(EXPECTED_CONTENT_TYPE):
        return None
    return f"Invalid content_type, should be '{EXPECTED_CONTENT_TYPE}'."


def run_stream(options, transport=None, dispatcher=None):
    """Consume ``options.url`` until the server closes it.

    Each event is dispatched before the next chunk is read from the
    socket. Returns the number of events delivered; fatal errors and
    EventLimitReached propagate.
    """
    transport = transport or Transport(options)
    if dispatcher is None:
        dispatcher = Dispatcher(options, poster=ReplyPoster(transport))
    parser = FrameParser(options.max_event_size)

    def on_data(chunk):
        log.debug("read %d byte", len(chunk))
        for event in parser.feed(chunk):
            dispatcher.dispatch(event)

    log.info("Connecting to SSE %s", options.url)
    try:
        transport.perform("GET", options.url, dict(STREAM_HEADERS),
                          on_data=on_data, on_verify=verify_event_stream)
    finally:
        transport.close()
    parser.finish()
    log.info("stream closed by server after %d event(s)", dispatcher.delivered)
    return dispatcher.delivered
