"""
Command line entry point.

Usage:
    sse-pipe [ <options> ] URL [ <command> ... ]

sse-pipe connects to URL, where it expects a stream of server sent events,
and runs <command> once per event.
"""
import argparse
import sys

from . import __version__
from .errors import EventLimitReached, SSEPipeError
from .log import setup_logger
from .options import MAX_EVENT_SIZE, RESPONSE_LIMIT, from_args
from .stream import run_stream

EPILOG = """\
On each incoming event <command> is run. The event's data attribute is
written to the command's standard input, all other attributes are passed in
the environment (as SSE_EVENT, SSE_ID, ... entries).

If an event carries a "reply" attribute, the command's output is POSTed to
the URL given there.

Without a command, events are written to standard output.
"""


def build_parser():
    parser = argparse.ArgumentParser(
        prog="sse-pipe",
        description="Run a command for every event of a server-sent event stream.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-a", "--ca", metavar="CA", help="PEM CA bundle file")
    parser.add_argument("-c", "--cert", metavar="CERT", help="PEM client certificate file")
    parser.add_argument("-i", "--insecure", action="store_true",
                        help="allow HTTP and non-certified HTTPS connections")
    parser.add_argument("-l", "--limit", type=int, default=0,
                        help="exit after this many events (default: 0, unlimited)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="be verbose; can be given multiple times")
    parser.add_argument("--response-limit", type=int, default=RESPONSE_LIMIT, metavar="BYTES",
                        help=f"max command output to capture (default: {RESPONSE_LIMIT})")
    parser.add_argument("--max-event-size", type=int, default=MAX_EVENT_SIZE, metavar="BYTES",
                        help=f"max size of a single event (default: {MAX_EVENT_SIZE})")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("url", help="URL of the event stream")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="command to run per event")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logger = setup_logger("sse_pipe", args.verbose)

    try:
        options = from_args(args)
        run_stream(options)
    except EventLimitReached as e:
        logger.info("%s", e)
        return e.exit_code
    except SSEPipeError as e:
        logger.error("%s", e)
        return e.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
