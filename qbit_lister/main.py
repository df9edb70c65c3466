from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from qbittorrentapi import TorrentDictionary

from qbit_lister.utils.config import QBitConfig
from qbit_lister.utils.context import RequestContext
from qbit_lister.utils.error_codes import ErrorCode
from qbit_lister.utils.filters import TorrentFilterOptions
from qbit_lister.utils.logging_setup import logging_setup
from qbit_lister.utils.qbit_lister_errors import (
    ConfigError,
    LoginError,
    RequestCancelledError,
    TorrentQueryError,
)
from qbit_lister.utils.qbittorrent_service import QBittorrentService
from qbit_lister.utils.read_env import read_env

DEFAULT_CATEGORY = "test"


def build_filter(category: str = DEFAULT_CATEGORY) -> TorrentFilterOptions:
    return TorrentFilterOptions(category=category)


def list_torrents(
    service: QBittorrentService,
    options: TorrentFilterOptions,
    ctx: RequestContext,
) -> list[TorrentDictionary]:
    """
    Log in, then list the torrents matching `options`.

    The query is never attempted when login fails.

    Raises:
        LoginError: If authentication fails or ctx is cancelled before it
        TorrentQueryError: If the torrent query fails or ctx is cancelled
            before it
    """
    try:
        service.login(ctx)
    except RequestCancelledError as e:
        raise LoginError(e.message, code=ErrorCode.CANCELLED, cause=e) from e

    try:
        torrents = service.get_torrents(options, ctx)
    except RequestCancelledError as e:
        raise TorrentQueryError(e.message, cause=e) from e
    service.logger.info(f"Found {len(torrents)} torrents")
    return torrents


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="List qBittorrent torrents in a category"
    )
    _ = parser.add_argument(
        "--host", help="WebUI URL (default: QBIT_HOST or http://localhost:8080)"
    )
    _ = parser.add_argument(
        "-u", "--username", help="WebUI username (default: QBIT_USERNAME)"
    )
    _ = parser.add_argument(
        "-p", "--password", help="WebUI password (default: QBIT_PASSWORD)"
    )
    _ = parser.add_argument(
        "-c",
        "--category",
        default=DEFAULT_CATEGORY,
        help=f"Category to filter on (default: {DEFAULT_CATEGORY})",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logger = logging_setup()

    try:
        config = QBitConfig.from_env(read_env()).with_overrides(
            host=args.host, username=args.username, password=args.password
        )
    except ConfigError as e:
        logger.error(f"invalid configuration: {e!r}")
        return 1

    service = QBittorrentService(config, logger=logger)
    ctx = RequestContext.background()

    try:
        list_torrents(service, build_filter(args.category), ctx)
    except LoginError as e:
        logger.error(f"could not log into client: {str(e)!r}")
        return 1
    except TorrentQueryError as e:
        logger.error(f"could not get torrents from client: {str(e)!r}")
        return 1
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
