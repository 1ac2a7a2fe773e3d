import logging

log = logging.getLogger(__name__)

REPLY_HEADERS = {"Content-Type": ""}


class ReplyPoster:
    """POST command output back to an event's ``reply`` URL."""

    def __init__(self, transport):
        self.transport = transport

    def post(self, url: str, body: bytes = b""):
        log.info("REPLY %s (%d byte)", url, len(body))
        # response body is ignored; a bad status is fatal inside perform()
        self.transport.perform("POST", url, dict(REPLY_HEADERS), body)
