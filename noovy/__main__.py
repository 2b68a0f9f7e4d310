"""
Command line access to the catalog engine, mostly for checking a deployment:

    python -m noovy list --page 2
    python -m noovy search hugo
    python -m noovy book <id>
"""
import argparse
import asyncio
import json
from typing import Any

from aiohttp import ClientSession

from noovy.internal.engine import create_library
from noovy.internal.env_settings import Settings
from noovy.util.exceptions import CacheExhausted
from noovy.util.log import logger, setup_logging


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="noovy")
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="list a page of books")
    list_cmd.add_argument("--page", type=int)
    list_cmd.add_argument("--limit", type=int)
    list_cmd.add_argument("--collection")

    search_cmd = sub.add_parser("search", help="search books by title or author")
    search_cmd.add_argument("query")
    search_cmd.add_argument("--page", type=int)
    search_cmd.add_argument("--limit", type=int)

    book_cmd = sub.add_parser("book", help="show one book with its download link")
    book_cmd.add_argument("identifier")
    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> Any:
    async with ClientSession() as client_session:
        library = create_library(settings, client_session)
        if args.command == "list":
            page = await library.list_books(
                page=args.page, limit=args.limit, collection=args.collection
            )
            return page.model_dump(mode="json")
        if args.command == "search":
            page = await library.search(args.query, page=args.page, limit=args.limit)
            return page.model_dump(mode="json")
        book = await library.get_book(args.identifier)
        return book.model_dump(mode="json") if book else None


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    settings = Settings()
    setup_logging(
        log_level=settings.app.log_level,
        log_format=settings.app.log_format,
        log_file=settings.app.log_file,
        config_dir=settings.app.config_dir,
    )

    try:
        result = asyncio.run(_run(args, settings))
    except CacheExhausted as e:
        logger.error("Catalog unavailable", error=str(e))
        return 1

    if result is None:
        logger.warning("Book not found", identifier=getattr(args, "identifier", None))
        return 1
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
