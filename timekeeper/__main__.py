# timekeeper/__main__.py

# Command line entry point: run the time publisher, the record-folding
# service, or both in one process.

import argparse
import logging
import sys
from typing import List, Optional, Tuple

from timekeeper import config
from timekeeper.encryption.digital_signatures import ParticipantSigner
from timekeeper.operations.scheduler import ScheduledPublisher, SubmissionScheduler
from timekeeper.operations.transport import HttpTransport

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timekeeper",
        description="Publish local time observations and fold them into ledger records.")
    parser.add_argument("endpoint", nargs="?",
                        help="record-folding service endpoint, overrides --connect")
    parser.add_argument("-C", "--connect", metavar="ENDPOINT", default=config.DEFAULT_CONNECT_STRING,
                        help="record-folding service endpoint to submit to")
    parser.add_argument("-p", "--period", type=int, default=config.DEFAULT_UPDATE_PERIOD,
                        help="how often to send time updates, in seconds")
    parser.add_argument("-v", dest="verbose", action="count", default=0,
                        help="verbosity, repeat for greater detail")
    parser.add_argument("--bind", metavar="HOST:PORT", default=config.DEFAULT_BIND,
                        help="address the record-folding service listens on")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-s", "--submitter", action="store_true", help="run only the submitter")
    mode.add_argument("-t", "--tp", action="store_true", help="run only the record-folding service")
    mode.add_argument("-b", "--both", action="store_true", help="run both [default]")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.period <= 0:
        parser.error(f"Invalid period: {args.period}")
    if args.endpoint:
        args.connect = args.endpoint
    args.start_submitter = not args.tp
    args.start_tp = not args.submitter
    return args


def parse_bind(bind: str) -> Tuple[str, int]:
    host, sep, port = bind.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid bind address: {bind}")
    return host or "0.0.0.0", int(port)


def load_signer() -> ParticipantSigner:
    if config.PRIVATE_KEY_FILE:
        return ParticipantSigner.from_file(config.PRIVATE_KEY_FILE)
    return ParticipantSigner()


def build_publisher(args: argparse.Namespace) -> ScheduledPublisher:
    signer = load_signer()
    transport = HttpTransport(args.connect, timeout=config.SUBMIT_TIMEOUT_S)
    scheduler = SubmissionScheduler(signer, transport,
                                    max_deviation=config.MAX_DEVIATION,
                                    max_history=config.MAX_HISTORY)
    logger.info(f"Publishing as participant {signer.get_public_key_hex()} to {args.connect}")
    return ScheduledPublisher(scheduler, args.period)


def start(args: argparse.Namespace) -> None:
    config.configure_logging(args.verbose)

    publisher = build_publisher(args) if args.start_submitter else None
    if publisher is not None:
        publisher.start()

    try:
        if args.start_tp:
            from timekeeper import create_app
            host, port = parse_bind(args.bind)
            app = create_app(scheduler=publisher.scheduler if publisher else None)
            app.run(host=host, port=port, threaded=True)
        else:
            while publisher.is_running():
                publisher.worker.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.warning("Interrupted, shutting down")
    finally:
        if publisher is not None:
            publisher.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.start_tp:
        try:
            parse_bind(args.bind)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2
    start(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
