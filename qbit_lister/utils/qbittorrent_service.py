from __future__ import annotations

import contextlib
from collections.abc import Iterator
from logging import Logger
from typing import Any

from qbittorrentapi import Client, TorrentDictionary
from qbittorrentapi import exceptions as qb_exceptions
from qbittorrentapi.exceptions import Forbidden403Error, LoginFailed

from qbit_lister.utils.config import QBitConfig
from qbit_lister.utils.context import RequestContext
from qbit_lister.utils.error_codes import ErrorCode
from qbit_lister.utils.filters import TorrentFilter, TorrentFilterOptions, TorrentState
from qbit_lister.utils.logging_setup import logging_setup
from qbit_lister.utils.qbit_lister_errors import LoginError, TorrentQueryError


class QBittorrentService:
    """
    Service class for talking to the qBittorrent Web API.
    """

    def __init__(self, config: QBitConfig, logger: Logger | None = None) -> None:
        """Build the underlying qbittorrentapi client; no request is made here."""
        self.config: QBitConfig = config
        self.logger: Logger = logger or logging_setup()

        requests_args: dict[str, Any] = {"timeout": config.effective_timeout}
        if config.basic_user or config.basic_pass:
            requests_args["auth"] = (config.basic_user, config.basic_pass)

        self.client: Client = Client(
            host=config.host,
            username=config.username,
            password=config.password,
            VERIFY_WEBUI_CERTIFICATE=not config.tls_skip_verify,
            REQUESTS_ARGS=requests_args,
        )

    # ----------------------
    # Connection Management
    # ----------------------
    def login(self, ctx: RequestContext) -> None:
        """
        Log in to the qBittorrent Web API.

        Skipped when both username and password are empty, for WebUIs that
        bypass authentication for whitelisted hosts.

        Args:
            ctx: Cancellation/deadline handle for the request

        Raises:
            RequestCancelledError: If ctx is cancelled or past its deadline
            LoginError: If the IP is banned, credentials are rejected or the
                host cannot be reached
        """
        if not self.config.username and not self.config.password:
            self.logger.debug("No credentials configured, skipping login")
            return

        ctx.check()
        try:
            self.client.auth_log_in(**_request_kwargs(ctx))
        except Forbidden403Error as e:
            raise LoginError(
                "User's IP is banned for too many failed login attempts",
                code=ErrorCode.FORBIDDEN,
                context={"host": self.config.host},
                cause=e,
            ) from e
        except LoginFailed as e:
            raise LoginError(
                f"bad credentials: {e}",
                code=ErrorCode.LOGIN_FAILED,
                context={"host": self.config.host, "username": self.config.username},
                cause=e,
            ) from e
        except qb_exceptions.APIConnectionError as e:
            raise LoginError(
                f"login error: {e}",
                code=ErrorCode.CONNECTION,
                context={"host": self.config.host},
                cause=e,
            ) from e

        self.logger.debug(f"logged into client: {self.config.host}")
        self.logger.debug(f"webapi version: {self.get_web_api_version()}")

    def logout(self) -> None:
        """Log out of the qBittorrent Web API."""
        try:
            self.client.auth_log_out()
            self.logger.debug("Logged out of qBittorrent Web API")
        except qb_exceptions.APIError as e:
            self.logger.warning(f"API error during logout: {e}")

    @contextlib.contextmanager
    def connection_context(self, ctx: RequestContext) -> Iterator[None]:
        """
        Context manager for a logged-in session.

        Usage:
            with service.connection_context(ctx):
                service.get_torrents(options)
        """
        self.login(ctx)
        try:
            yield
        finally:
            self.logout()

    def get_web_api_version(self) -> str:
        try:
            return str(self.client.app_web_api_version())
        except qb_exceptions.APIError as e:
            self.logger.warning(f"could not get webapi version: {e}")
            return "unknown"

    # ----------------------
    # Torrent queries
    # ----------------------
    def get_torrents(
        self, options: TorrentFilterOptions, ctx: RequestContext | None = None
    ) -> list[TorrentDictionary]:
        """
        List torrents matching the given filter options.

        Args:
            options: Criteria sent to torrents/info
            ctx: Optional cancellation/deadline handle

        Returns:
            list[TorrentDictionary]: The matching torrents

        Raises:
            RequestCancelledError: If ctx is cancelled or past its deadline
            TorrentQueryError: If the query fails
        """
        ctx = ctx or RequestContext.background()
        ctx.check()

        query = options.to_query()
        self.logger.debug(f"Querying torrents with {query}")
        try:
            torrents = self.client.torrents_info(**query, **_request_kwargs(ctx))
        except qb_exceptions.APIError as e:
            raise TorrentQueryError(
                f"get torrents error: {e}", cause=e, query=query
            ) from e

        return list(torrents)

    def get_torrents_active_downloads(
        self, ctx: RequestContext | None = None
    ) -> list[TorrentDictionary]:
        """
        List torrents that are actually downloading.

        qBittorrent counts paused and queued torrents as "downloading", so
        only states downloading and stalledDL are kept.
        """
        torrents = self.get_torrents(
            TorrentFilterOptions(filter=TorrentFilter.DOWNLOADING), ctx
        )
        active = {TorrentState.DOWNLOADING, TorrentState.STALLED_DL}
        return [t for t in torrents if t["state"] in active]


def _request_kwargs(ctx: RequestContext) -> dict[str, Any]:
    # cap the request timeout at the time left on the context
    remaining = ctx.remaining()
    if remaining is None:
        return {}
    return {"requests_args": {"timeout": remaining}}
