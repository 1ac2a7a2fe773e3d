"""HTTP transport with retry-on-connect and response validation.

A ``Transport`` keeps one ``requests.Session`` per verb so that repeated
requests (e.g. reply POSTs) reuse their connection. It is not safe to use
the same Transport from several threads at once; create one per stream.
"""
import logging
import time

import requests
from urllib3.exceptions import ConnectTimeoutError, HTTPError, NewConnectionError, ProxyError

from . import __version__
from .errors import ProtocolError, TransportError

log = logging.getLogger(__name__)

USER_AGENT = f"sse-pipe/{__version__}"
RETRIES = 5
RETRY_DELAY = 3
MAX_REDIRECTS = 10
READ_SIZE = 8192

# failures before the request reached the server: DNS, proxy, TCP connect
RETRYABLE_REASONS = (NewConnectionError, ConnectTimeoutError, ProxyError)


def _is_retryable(exc):
    # SSLError derives from ConnectionError but a handshake failure won't heal
    if isinstance(exc, requests.exceptions.SSLError):
        return False
    if not isinstance(exc, requests.exceptions.ConnectionError):
        return False
    # a dropped connection after the request went out is wrapped differently
    # (ProtocolError, no MaxRetryError) and must not be resent
    cause = exc.args[0] if exc.args else None
    return isinstance(getattr(cause, "reason", None), RETRYABLE_REASONS)


def _reader(response):
    raw = response.raw
    if raw.chunked:
        return response.iter_content(chunk_size=None)
    return iter(lambda: raw.read1(READ_SIZE, decode_content=True), b"")


def iter_body(response):
    """Yield body bytes as they arrive from the socket.

    ``iter_content(chunk_size=None)`` hands over chunked bodies chunk by
    chunk, but waits for EOF on a close-delimited body. For those, short
    reads return whatever the socket has.

    Raises TransportError when the connection fails mid-body.
    """
    chunks = None
    while True:
        try:
            if chunks is None:
                chunks = _reader(response)
            chunk = next(chunks, None)
        except (requests.RequestException, HTTPError, OSError) as e:
            raise TransportError(f"{response.url}: {e}") from e
        if chunk is None:
            break
        if chunk:
            yield chunk


class Transport:
    def __init__(self, options, retries=RETRIES, retry_delay=RETRY_DELAY):
        self.options = options
        self.retries = retries
        self.retry_delay = retry_delay
        self._sessions = {}

    def session(self, verb):
        """Return the session for ``verb``, creating it on first use."""
        session = self._sessions.get(verb)
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = USER_AGENT
            session.max_redirects = MAX_REDIRECTS
            session.verify = self.options.verify
            if self.options.ssl_cert:
                session.cert = self.options.ssl_cert
            self._sessions[verb] = session
        return session

    def close(self):
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()

    def _request(self, verb, url, headers, body):
        session = self.session(verb)
        retries = self.retries
        while True:
            try:
                return session.request(verb, url, headers=headers, data=body, stream=True)
            except requests.RequestException as e:
                if not _is_retryable(e):
                    raise TransportError(f"{url}: {e}") from e
                log.warning("%s: %s", url, e)
                if retries <= 0:
                    raise TransportError(f"{url}: giving up after {self.retries} retries") from e
                retries -= 1
                log.warning("retrying...")
                time.sleep(self.retry_delay)

    def perform(self, verb, url, headers=None, body=None, on_data=None, on_verify=None):
        """Run one request and stream the response body to ``on_data``.

        The status code is checked, and ``on_verify`` consulted, before any
        body byte is delivered. A non-empty string returned by ``on_verify``
        is a protocol failure.

        Raises TransportError or ProtocolError; exceptions raised by
        ``on_data`` propagate unchanged.
        """
        response = self._request(verb, url, headers, body)
        try:
            if not 200 <= response.status_code < 300:
                raise ProtocolError(f"{response.url}: HTTP(S) status code {response.status_code}")

            verification_error = on_verify(response) if on_verify else None
            if verification_error:
                raise ProtocolError(f"{response.url}: {verification_error}")

            for chunk in iter_body(response):
                if on_data:
                    on_data(chunk)
            return response
        finally:
            response.close()
