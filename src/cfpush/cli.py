"""cfpush CLI - delta upload of application artifacts.

Usage:
    cfpush fingerprint PATH
    cfpush payload PATH --out FILE [--known FILE]
    cfpush push PATH --app-guid GUID [--api-url URL] [--verbose]

PATH is an exploded application directory or a zip/war/jar archive.
push reads connection settings from CFPUSH_* environment variables.

Exit codes:
    0: Success
    1: Artifact or control plane failure / job failed / internal error
    2: Usage or configuration error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from cfpush.archive import ArchiveError, open_archive
from cfpush.client import CloudControllerClient, CloudControllerError, JobStatus
from cfpush.config import ConfigError, load_buffer_size, load_controller_settings
from cfpush.upload import (
    ApplicationUploader,
    KnownResourceSet,
    LoggingUploadStatusCallback,
    UploadPayload,
    build_fingerprint,
    fingerprint_to_wire,
)

logger = logging.getLogger(__name__)


def _output_json(data: Any) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error_result(code: str, message: str) -> dict[str, Any]:
    """Create an error result dict."""
    return {"error": {"code": code, "message": message}}


def _load_known(path: str | None) -> tuple[KnownResourceSet, str | None]:
    """Load a known-resource list from a JSON file.

    Accepts either a JSON array of filenames or a resource match response
    (array of {fn, size, sha1}).

    Returns:
        Tuple of (known_set, error_message). If error_message is not None,
        known_set should be ignored.
    """
    if path is None:
        return KnownResourceSet.empty(), None
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return KnownResourceSet.empty(), f"File not found: {path}"
    except json.JSONDecodeError as e:
        return KnownResourceSet.empty(), f"Invalid JSON: {e}"
    except OSError as e:
        return KnownResourceSet.empty(), f"Cannot read input: {e}"

    if isinstance(data, list) and all(isinstance(item, str) for item in data):
        return KnownResourceSet.of(data), None
    try:
        return KnownResourceSet.from_wire(data), None
    except ValueError as e:
        return KnownResourceSet.empty(), str(e)


def cmd_fingerprint(args: argparse.Namespace) -> int:
    """Print the fingerprint of an artifact."""
    with open_archive(args.path, buffer_size=load_buffer_size()) as reader:
        descriptors = build_fingerprint(reader)
    _output_json(fingerprint_to_wire(descriptors))
    return 0


def cmd_payload(args: argparse.Namespace) -> int:
    """Write the delta zip of an artifact to a file."""
    known, error_msg = _load_known(args.known)
    if error_msg is not None:
        _output_json(_make_error_result("INVALID_KNOWN_RESOURCES", error_msg))
        return 2

    with open_archive(args.path, buffer_size=load_buffer_size()) as reader:
        fingerprint = build_fingerprint(reader)
        known = known.restricted_to(fingerprint)
        payload = UploadPayload.build(reader, known, fingerprint)
        with open(args.out, "wb") as out:
            bytes_written = payload.write_to(out)

    _output_json(
        {
            "bytes_written": bytes_written,
            "directories": payload.directory_count,
            "files": payload.file_count,
            "matched": len(known),
            "out": args.out,
            "total_uncompressed_size": payload.total_uncompressed_size,
        }
    )
    return 0


def cmd_push(args: argparse.Namespace) -> int:
    """Upload an artifact to an application."""
    settings = load_controller_settings(api_url=args.api_url)
    buffer_size = load_buffer_size()

    with CloudControllerClient(settings) as client:
        uploader = ApplicationUploader(matcher=client, uploader=client)
        outcome = uploader.upload_path(
            args.app_guid,
            args.path,
            LoggingUploadStatusCallback(),
            buffer_size=buffer_size,
        )

    _output_json(
        {
            "app_guid": outcome.app_guid,
            "files": outcome.uploaded_file_count,
            "job_status": outcome.last_status,
            "matched": outcome.matched_count,
            "total_uncompressed_size": outcome.total_uncompressed_size,
        }
    )
    return 1 if outcome.last_status == JobStatus.FAILED.value else 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cfpush",
        description="cfpush - delta upload of application artifacts",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log progress to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    fingerprint_parser = subparsers.add_parser(
        "fingerprint",
        help="Print the {fn, size, sha1} fingerprint of an artifact",
    )
    fingerprint_parser.add_argument("path", metavar="PATH", help="Directory or archive file")

    payload_parser = subparsers.add_parser(
        "payload",
        help="Write the delta zip of an artifact",
    )
    payload_parser.add_argument("path", metavar="PATH", help="Directory or archive file")
    payload_parser.add_argument(
        "--out",
        required=True,
        metavar="FILE",
        help="Path to write the zip to",
    )
    payload_parser.add_argument(
        "--known",
        metavar="FILE",
        help="JSON array of filenames (or {fn, size, sha1}) already on the platform",
    )

    push_parser = subparsers.add_parser(
        "push",
        help="Upload an artifact to an application",
    )
    push_parser.add_argument("path", metavar="PATH", help="Directory or archive file")
    push_parser.add_argument(
        "--app-guid",
        required=True,
        metavar="GUID",
        help="Target application GUID",
    )
    push_parser.add_argument(
        "--api-url",
        metavar="URL",
        help="Control plane base URL (overrides CFPUSH_API_URL)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Artifact or control plane failure / job failed / internal error
        2: Usage or configuration error
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        logging.basicConfig(
            level=logging.INFO if args.verbose else logging.WARNING,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

        if args.command is None:
            parser.print_help()
            return 0

        if args.command == "fingerprint":
            return cmd_fingerprint(args)

        if args.command == "payload":
            return cmd_payload(args)

        if args.command == "push":
            return cmd_push(args)

        return 0

    except ConfigError as e:
        _output_json(_make_error_result("CONFIG_ERROR", str(e)))
        return 2
    except ArchiveError as e:
        _output_json(_make_error_result(type(e).__name__, str(e)))
        return 1
    except CloudControllerError as e:
        _output_json(_make_error_result(type(e).__name__, str(e)))
        return 1
    except Exception as e:
        # Unexpected errors return exit code 1
        logger.debug("Unexpected error", exc_info=True)
        _output_json(_make_error_result("INTERNAL_ERROR", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
