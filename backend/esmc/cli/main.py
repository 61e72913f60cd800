"""CLI for the halt checkpoint, lessons ledger, synthesizer and packaging checks."""
import argparse
import asyncio
import json
import sys
from pathlib import Path

from esmc.core.exceptions import ESMCError
from esmc.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)


def _emit(payload, stream=None):
    stream = stream or sys.stdout
    stream.write(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


def _fail(message: str, **details) -> int:
    payload = {"error": message}
    if details:
        payload["details"] = details
    _emit(payload, sys.stderr)
    return 1


def cmd_synthesize(args):
    """Merge the PIU, DKI, UIP and PCA fragments into a technical summary."""
    from esmc.services.technical_synthesizer import FRAGMENT_NAMES, synthesize

    if len(args.fragments) != len(FRAGMENT_NAMES):
        return _fail(
            "Usage: synthesize <piu> <dki> <uip> <pca>",
            expected=len(FRAGMENT_NAMES),
            received=len(args.fragments),
        )
    try:
        result = synthesize(*args.fragments)
    except ESMCError as e:
        return _fail(e.message, **e.details)
    except Exception as e:
        logger.error(f"Synthesis failed: {e}", exc_info=True)
        return _fail(str(e))
    _emit(result)
    return 0


def cmd_halt(args):
    """Evaluate a proposal with the default detectors."""
    from esmc.components.contracts import Proposal
    from esmc.services.halt_checkpoint import HaltCheckpoint
    from esmc.services.lesson_ledger import LessonLedger

    context = {"user_message": args.user_message} if args.user_message else {}
    proposal = Proposal(
        description=args.description,
        keywords=args.keyword or [],
        approach=args.approach or "",
        session_id=args.session,
        context=context,
    )
    ledger = LessonLedger(args.ledger) if args.ledger else LessonLedger()
    checkpoint = HaltCheckpoint(ledger=ledger, auto_lessons=False if args.no_lesson else None)

    decision = asyncio.run(checkpoint.evaluate_halt(proposal))
    if args.dialogue:
        sys.stdout.write(decision.dialogue + "\n")
    else:
        _emit(decision.to_dict())
    return 0


def cmd_lessons(args):
    """Print the lessons ledger."""
    from esmc.services.lesson_ledger import LessonLedger

    ledger = LessonLedger(args.ledger) if args.ledger else LessonLedger()
    try:
        lessons = ledger.list_lessons(category=args.category)
    except ESMCError as e:
        return _fail(e.message, **e.details)
    _emit([lesson.model_dump(mode="json") for lesson in lessons])
    return 0


def cmd_tier(args):
    """Show the active tier resolved from local credentials."""
    from esmc.services.tier_manager import TierManager

    manager = TierManager(args.credentials) if args.credentials else TierManager()
    status = manager.initialize()
    status["features"] = manager.get_features()
    _emit(status)
    return 0


def cmd_verify(args):
    """Verify package signature and file checksums."""
    from esmc.services.package_verifier import verify_package

    try:
        report = verify_package(Path(args.root), args.manifest, args.signature)
    except ESMCError as e:
        return _fail(e.message, **e.details)
    _emit(report.to_dict())
    return 0 if report.valid else 1


def cmd_serve(args):
    """Run the HTTP API."""
    import uvicorn

    from esmc.core.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "esmc.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=False,
    )
    return 0


def build_parser():
    p = argparse.ArgumentParser(prog="esmc")
    sub = p.add_subparsers(dest="cmd")

    s = sub.add_parser("synthesize", help="Synthesize four intelligence fragments")
    s.add_argument("fragments", nargs="*", metavar="fragment", help="PIU, DKI, UIP and PCA JSON")
    s.set_defaults(func=cmd_synthesize)

    s = sub.add_parser("halt", help="Evaluate a proposal at the halt checkpoint")
    s.add_argument("--description", "-d", required=True, help="What is about to be done")
    s.add_argument("--keyword", "-k", action="append", help="Trigger keyword (repeatable)")
    s.add_argument("--approach", "-a", help="Approach being attempted")
    s.add_argument("--session", help="Session id")
    s.add_argument("--user-message", help="Latest user message, checked for intervention signals")
    s.add_argument("--ledger", help="Lessons ledger path")
    s.add_argument("--no-lesson", action="store_true", help="Do not record a lesson on halt")
    s.add_argument("--dialogue", action="store_true", help="Print the human-readable dialogue")
    s.set_defaults(func=cmd_halt)

    s = sub.add_parser("lessons", help="List recorded lessons")
    s.add_argument("--category", "-c", help="Only this category")
    s.add_argument("--ledger", help="Lessons ledger path")
    s.set_defaults(func=cmd_lessons)

    s = sub.add_parser("tier", help="Show tier status")
    s.add_argument("--credentials", help="Credentials file path")
    s.set_defaults(func=cmd_tier)

    s = sub.add_parser("verify", help="Verify package integrity")
    s.add_argument("root", help="Package root directory")
    s.add_argument("--manifest", help="Manifest path relative to root")
    s.add_argument("--signature", help="Signature path relative to root")
    s.set_defaults(func=cmd_verify)

    s = sub.add_parser("serve", help="Run the HTTP API")
    s.add_argument("--host")
    s.add_argument("--port", type=int)
    s.set_defaults(func=cmd_serve)
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    if not hasattr(args, "func"):
        p.print_help()
        return 2
    return args.func(args)


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
