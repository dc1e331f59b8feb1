"""FrameScan CLI - deterministic command-line interface.

Usage:
    python -m framescan score [--input PATH] [--domain DOMAIN]
    python -m framescan scan-text (--content TEXT | --input PATH) [--domain DOMAIN] [--contact ID]
    python -m framescan credits [--transactions N]
    python -m framescan profile --contact ID [--window N]

Exit codes:
    0: Success
    1: Failure (invalid input, provider failure, internal error)
    2: BLOCKED (content rejected, insufficient credits, scan throttled)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from framescan.pipeline.errors import (
    ContentRejected,
    InsufficientCredits,
    ProviderFailure,
    ScanError,
    ScanThrottled,
)
from framescan.scoring.domain_packs import DomainPackNotFoundError, get_domain_pack
from framescan.scoring.engine import InvalidAxisScore, axis_scores_from_raw, compute_frame_score
from framescan.scoring.models import TEXT_DOMAINS, Domain
from framescan.service import CONTACT_ZERO_ID, FrameScanService

EXIT_OK = 0
EXIT_FAIL = 1
EXIT_BLOCKED = 2

_BLOCKING_ERRORS: tuple[type[ScanError], ...] = (
    ContentRejected,
    InsufficientCredits,
    ScanThrottled,
)


def _output_json(data: Any) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _error(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"error": {"code": code, "details": details, "message": message}}


def _read_input(input_path: str | None) -> tuple[str | None, str | None]:
    """Read text from a file or stdin.

    Returns:
        Tuple of (content, error_message).
    """
    try:
        if input_path:
            with open(input_path, encoding="utf-8") as f:
                content = f.read()
        else:
            content = sys.stdin.read()
    except FileNotFoundError:
        return None, f"File not found: {input_path}"
    except OSError as e:
        return None, f"Cannot read input: {e}"
    if not content.strip():
        return None, "Empty input"
    return content, None


def cmd_score(args: argparse.Namespace) -> int:
    """Score a JSON axis set: a list of {axis_id, score} or {"axes": [...]}."""
    content, error_msg = _read_input(args.input)
    if error_msg is not None:
        _output_json(_error("INVALID_INPUT", error_msg))
        return EXIT_FAIL
    try:
        data = json.loads(content or "")
    except json.JSONDecodeError as e:
        _output_json(_error("INVALID_JSON", f"Invalid JSON: {e}"))
        return EXIT_FAIL

    items = data.get("axes") if isinstance(data, dict) else data
    if not isinstance(items, list):
        _output_json(_error("INVALID_INPUT", "Expected a list of axis scores"))
        return EXIT_FAIL

    try:
        pack = get_domain_pack(args.domain)
        score = compute_frame_score(axis_scores_from_raw(items), pack)
    except (InvalidAxisScore, DomainPackNotFoundError) as e:
        _output_json(_error(type(e).__name__.upper(), str(e)))
        return EXIT_FAIL

    _output_json(score.model_dump(mode="json"))
    return EXIT_OK


def cmd_scan_text(args: argparse.Namespace, service: FrameScanService) -> int:
    if args.content is not None:
        content: str | None = args.content
    else:
        content, error_msg = _read_input(args.input)
        if error_msg is not None:
            _output_json(_error("INVALID_INPUT", error_msg))
            return EXIT_FAIL

    try:
        result = service.run_text_scan(
            content or "",
            domain=Domain(args.domain),
            subject_contact_ids=args.contact or None,
        )
    except _BLOCKING_ERRORS as e:
        _output_json(_error(e.code, e.user_message, e.details()))
        return EXIT_BLOCKED
    except ProviderFailure as e:
        _output_json(_error(e.code, e.user_message, e.details()))
        return EXIT_FAIL

    _output_json(
        {
            "advisories": [a.model_dump(mode="json") for a in result.advisories],
            "credits_remaining": result.credits_remaining,
            "report": result.report.model_dump(mode="json"),
        }
    )
    return EXIT_OK


def cmd_credits(args: argparse.Namespace, service: FrameScanService) -> int:
    balance = service.get_credit_balance()
    data: dict[str, Any] = {
        "available": balance.available,
        "balance": balance.model_dump(mode="json"),
    }
    if args.transactions:
        data["transactions"] = [
            t.model_dump(mode="json") for t in service.get_credit_transactions(args.transactions)
        ]
    _output_json(data)
    return EXIT_OK


def cmd_profile(args: argparse.Namespace, service: FrameScanService) -> int:
    view = service.get_contact_profile(args.contact, args.window)
    _output_json(
        {
            "profile": view.profile.model_dump(mode="json"),
            "trend": view.trend.model_dump(mode="json") if view.trend else None,
        }
    )
    return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="framescan",
        description="FrameScan - frame scoring and credit-gated analysis CLI",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")
    domains = [d.value for d in Domain]

    score_parser = subparsers.add_parser("score", help="Compute a frame score from axis scores")
    score_parser.add_argument("--input", "-i", help="Path to axis JSON (default: stdin)")
    score_parser.add_argument("--domain", default=Domain.GENERIC.value, choices=domains)

    scan_parser = subparsers.add_parser("scan-text", help="Run a text frame scan")
    source = scan_parser.add_mutually_exclusive_group()
    source.add_argument("--content", "-c", help="Text to scan")
    source.add_argument("--input", "-i", help="Path to a text file (default: stdin)")
    scan_parser.add_argument(
        "--domain",
        default=Domain.GENERIC.value,
        choices=sorted(d.value for d in TEXT_DOMAINS),
    )
    scan_parser.add_argument(
        "--contact",
        action="append",
        help=f"Subject contact id (repeatable, default: {CONTACT_ZERO_ID})",
    )

    credits_parser = subparsers.add_parser("credits", help="Show the credit balance")
    credits_parser.add_argument(
        "--transactions", type=int, default=0, help="Include the N newest transactions"
    )

    profile_parser = subparsers.add_parser("profile", help="Show a contact's frame profile")
    profile_parser.add_argument("--contact", required=True, help="Contact id")
    profile_parser.add_argument("--window", type=int, default=3, help="Trend window")

    return parser


def main(argv: list[str] | None = None, service: FrameScanService | None = None) -> int:
    """Main entry point.

    Args:
        argv: Arguments (default: sys.argv[1:]).
        service: Service override for tests; built from the environment otherwise.
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.verbose:
            logging.basicConfig(
                level=logging.DEBUG,
                format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            )

        if args.command is None:
            parser.print_help()
            return EXIT_OK

        if args.command == "score":
            return cmd_score(args)

        service = service or FrameScanService.create()
        if args.command == "scan-text":
            return cmd_scan_text(args, service)
        if args.command == "credits":
            return cmd_credits(args, service)
        if args.command == "profile":
            return cmd_profile(args, service)
        return EXIT_OK

    except Exception as e:
        # Fail-closed: unexpected errors return exit code 1
        _output_json(_error("INTERNAL_ERROR", str(e)))
        return EXIT_FAIL


if __name__ == "__main__":
    sys.exit(main())
