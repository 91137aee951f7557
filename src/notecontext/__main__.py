"""Command line entry point: reindex notes, build context, probe models."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from notecontext.logging_config import configure_logging
from notecontext.models import Keyword
from notecontext.services.context import ContextService, get_context_service
from notecontext.workspace import WorkspaceError

LOGGER = logging.getLogger("notecontext.cli")


def _keyword(value: str) -> Keyword:
    text, sep, weight = value.rpartition(":")
    if not sep:
        return Keyword(text=value)
    try:
        parsed = float(weight)
    except ValueError:
        return Keyword(text=value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"keyword weight must be positive: {value!r}")
    return Keyword(text=text, weight=parsed)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="notecontext", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("reindex", help="Rechunk and re-embed every workspace document.")

    index_file = commands.add_parser("index-file", help="Reindex one markdown document.")
    index_file.add_argument("path", help="Document path, absolute or relative to the workspace.")

    context = commands.add_parser("context", help="Print the context for weighted keywords.")
    context.add_argument(
        "--keyword",
        "-k",
        dest="keywords",
        action="append",
        type=_keyword,
        default=[],
        help="Keyword as TEXT or TEXT:WEIGHT; repeatable.",
    )

    commands.add_parser("probe", help="Report whether the embedding and rerank models answer.")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, service: ContextService) -> int:
    if args.command == "reindex":
        summary = await service.process_all_documents()
        print(json.dumps(summary.as_dict()))
        return 0 if summary.failed == 0 else 1

    if args.command == "index-file":
        success = await service.process_document(args.path)
        print(json.dumps({"path": args.path, "success": success}))
        return 0 if success else 1

    if args.command == "context":
        print(await service.build_context(args.keywords))
        return 0

    result = await service.probes()
    print(json.dumps({"embedding": result.embedding, "rerank": result.rerank}))
    return 0 if result.embedding else 1


def main(argv: list[str] | None = None, *, service: ContextService | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging()

    try:
        return asyncio.run(_run(args, service or get_context_service()))
    except WorkspaceError as error:
        LOGGER.error("Workspace is not usable: %s", error)
        return 2


if __name__ == "__main__":
    sys.exit(main())
