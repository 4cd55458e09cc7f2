"""CLI entrypoint for kmime."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from kmime import __version__
from kmime.config import Settings, get_settings
from kmime.errors import KmimeError
from kmime.history import AuditLog, print_history
from kmime.identity import get_user_identifier
from kmime.parsing import parse_env_file, parse_labels
from kmime.session import ConsoleReporter, Session, SessionParams, write_preview

logger = logging.getLogger("kmime")

EXIT_FAILED = 1
EXIT_UNEXPECTED = 2
EXIT_INTERRUPTED = 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kmime",
        description=(
            "Create a temporary, interactive pod by cloning an existing one. "
            "The clone keeps the source's environment, volumes and service account, "
            "runs COMMAND with a TTY attached, and is deleted when the session ends."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    run = subparsers.add_parser(
        "run",
        help="Clone a pod and attach to it",
        usage="%(prog)s [options] SOURCE_POD [--] [COMMAND ...]",
        description="Clone SOURCE_POD and run COMMAND (default: bash) in it. Put COMMAND after -- when it has options.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    run.add_argument("source_pod", help="Name of the pod to clone")
    run.add_argument(
        "--namespace",
        "-n",
        required=True,
        help="Namespace of the source pod",
    )
    run.add_argument("--prefix", default="", help="Prefix for the new pod's name")
    run.add_argument("--suffix", default="", help="Suffix for the new pod's name")
    run.add_argument(
        "--label",
        "-l",
        action="append",
        default=[],
        help="Add a label to the new pod (e.g. -l key=value); repeatable",
    )
    run.add_argument(
        "--env-file",
        default="",
        help="Path to a file with environment variables to add to the pod",
    )
    run.add_argument(
        "--skip-identification",
        action="store_true",
        help="Skip appending user identification to the pod name",
    )
    run.add_argument(
        "--preview",
        action="store_true",
        help="Write the generated pod specification as YAML without creating it",
    )
    run.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the new pod to start (default: from settings)",
    )
    run.add_argument(
        "--kubeconfig",
        type=Path,
        default=None,
        help="Path to kubeconfig (default: KUBECONFIG env or ~/.kube/config)",
    )
    run.add_argument("--context", default=None, help="Kubernetes context to use")

    subparsers.add_parser(
        "history",
        help="Show previously started sessions",
        description="Show the sessions recorded in the kmime log, newest first.",
    )
    return parser


def _parse_args(parser: argparse.ArgumentParser, argv: list[str] | None) -> argparse.Namespace:
    """Parse options anywhere on the line; leftover words and anything after -- form the command."""
    argv = list(sys.argv[1:] if argv is None else argv)
    tail: list[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, tail = argv[:split], argv[split + 1 :]
    args, extras = parser.parse_known_args(argv)
    unknown = [arg for arg in extras if arg.startswith("-")]
    if unknown:
        parser.error(f"unrecognized arguments: {' '.join(unknown)}")
    if args.subcommand != "run":
        if extras or tail:
            parser.error(f"unrecognized arguments: {' '.join(extras + tail)}")
        return args
    args.command = extras + tail
    return args


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=Console(stderr=True))],
    )
    if not verbose:
        logger.setLevel(logging.WARNING)


def _session_params(args: argparse.Namespace, settings: Settings) -> SessionParams:
    """Validate user input before anything touches the cluster."""
    labels = parse_labels(args.label)
    envs = parse_env_file(args.env_file)
    user = "" if args.skip_identification else get_user_identifier()
    return SessionParams(
        source_pod=args.source_pod,
        namespace=args.namespace,
        command=list(args.command) or list(settings.default_command),
        prefix=args.prefix,
        suffix=args.suffix,
        labels=labels,
        envs=envs,
        user=user,
        env_file=args.env_file,
    )


def _run(args: argparse.Namespace, settings: Settings) -> int:
    if args.kubeconfig:
        settings.kubeconfig = args.kubeconfig
    if args.context:
        settings.context = args.context
    if args.timeout is not None:
        settings.ready_timeout_seconds = args.timeout

    params = _session_params(args, settings)
    if args.preview:
        path = write_preview(params, settings)
        print(f"Pod specification saved to {path}")
        return 0

    # SIGTERM unwinds like Ctrl-C so the pod is still cleaned up
    signal.signal(signal.SIGTERM, signal.default_int_handler)
    result = Session(params, settings=settings, reporter=ConsoleReporter()).run()
    if result.cancelled:
        return EXIT_INTERRUPTED
    if not result.succeeded:
        return EXIT_FAILED
    return result.exit_code or 0


def _history(settings: Settings) -> int:
    records = AuditLog(settings.audit_log_path).read()
    print_history(records, Console())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for kmime CLI."""
    args = _parse_args(_build_parser(), argv)
    _configure_logging(args.verbose)

    try:
        settings = get_settings()
        if args.subcommand == "history":
            return _history(settings)
        return _run(args, settings)
    except KmimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except Exception as e:
        logging.exception("kmime failed")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    sys.exit(main())
