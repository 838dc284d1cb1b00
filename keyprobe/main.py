import argparse
import sys
from typing import List, Optional, TextIO

from keyprobe.config.settings import find_env_file, load_credential, load_settings
from keyprobe.core.exceptions.exceptions import ConfigurationError
from keyprobe.services.reporter import ConsoleReporter
from keyprobe.services.verifier_service import CredentialVerifier
from keyprobe.utils.log import app_logger


EXIT_OK = 0
EXIT_NO_CREDENTIAL = 1
EXIT_PROBE_FAILED = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keyprobe",
        description="Verify that an OpenAI API key works for chat completions and text-to-speech.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Key from the environment or a nearby .env file
  keyprobe

  # Only check the key format, no network calls
  keyprobe --check-only

  # Run both probes at the same time against a proxy
  keyprobe --parallel --base-url http://localhost:8080/v1
        """,
    )
    parser.add_argument("--env-file", type=str, default=None, help="Path to a .env file (default: search nearby)")
    parser.add_argument("--check-only", action="store_true", help="Only validate the key format")
    parser.add_argument("--parallel", action="store_true", help="Run the chat and speech probes concurrently")
    parser.add_argument("--timeout", type=float, default=None, help="Per-probe timeout in seconds (default: 10)")
    parser.add_argument("--base-url", type=str, default=None, help="API base URL (default: https://api.openai.com/v1)")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument(
        "--allow-failures",
        action="store_true",
        help="Exit 0 even when a probe fails (only a missing key exits non-zero)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    return parser


def main(argv: Optional[List[str]] = None, stream: Optional[TextIO] = None) -> int:
    args = build_parser().parse_args(argv)
    reporter = ConsoleReporter(stream)

    overrides = {}
    if args.timeout is not None:
        overrides["PROBE_TIMEOUT"] = args.timeout
    if args.base_url:
        overrides["OPENAI_BASE_URL"] = args.base_url

    try:
        env_path = find_env_file(args.env_file)
        settings = load_settings(env_path, **overrides)
    except ConfigurationError as e:
        reporter.configuration_error(e.message)
        return EXIT_NO_CREDENTIAL

    app_logger.set_level("DEBUG" if args.verbose else settings.LOG_LEVEL)
    if not args.json:
        reporter.env_loaded(env_path)

    credential = load_credential(settings)
    verifier = CredentialVerifier.from_settings(settings)
    check = verifier.validate_format(credential)

    if check.is_empty:
        reporter.missing_credential()
        return EXIT_NO_CREDENTIAL

    if args.check_only:
        reporter.format_check(check)
        return EXIT_OK

    if not args.json:
        reporter.header()
    try:
        report = verifier.verify(credential, parallel=args.parallel)
    except ConfigurationError as e:
        reporter.configuration_error(e.message)
        return EXIT_NO_CREDENTIAL

    if args.json:
        reporter.render_json(report)
    else:
        reporter.render(report)

    if report.interrupted:
        return EXIT_INTERRUPTED
    if not report.ok and not args.allow_failures:
        return EXIT_PROBE_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
