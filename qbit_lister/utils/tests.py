import logging
import time
from typing import Any

import pytest
from qbittorrentapi import exceptions as qb_exceptions
from qbittorrentapi.exceptions import Forbidden403Error, LoginFailed

from qbit_lister import main as main_mod
from qbit_lister.utils import logging_setup as logging_setup_mod
from qbit_lister.utils import qbittorrent_service as qs_mod
from qbit_lister.utils import read_env as read_env_mod
from qbit_lister.utils.config import DEFAULT_TIMEOUT, QBitConfig
from qbit_lister.utils.context import RequestContext
from qbit_lister.utils.error_codes import ErrorCode
from qbit_lister.utils.filters import TorrentFilter, TorrentFilterOptions
from qbit_lister.utils.qbit_lister_errors import (
    ConfigError,
    LoginError,
    RequestCancelledError,
    TorrentQueryError,
)
from qbit_lister.utils.qbittorrent_service import QBittorrentService


# -----------------------
# fakes
# -----------------------
class FakeClient:
    def __init__(
        self,
        torrents: list[dict[str, Any]] | None = None,
        login_error: Exception | None = None,
        query_error: Exception | None = None,
        **kwargs: Any,
    ) -> None:
        self.kwargs = kwargs
        self.torrents = torrents or []
        self.login_error = login_error
        self.query_error = query_error
        self.calls: list[str] = []
        self.queries: list[dict[str, Any]] = []

    def auth_log_in(self, **kwargs: Any) -> None:
        self.calls.append("auth_log_in")
        if self.login_error is not None:
            raise self.login_error

    def auth_log_out(self, **kwargs: Any) -> None:
        self.calls.append("auth_log_out")

    def app_web_api_version(self, **kwargs: Any) -> str:
        return "2.11.4"

    def torrents_info(self, **kwargs: Any) -> list[dict[str, Any]]:
        self.calls.append("torrents_info")
        self.queries.append(kwargs)
        if self.query_error is not None:
            raise self.query_error
        return self.torrents


def _install_fake(
    monkeypatch: pytest.MonkeyPatch, **fake_kwargs: Any
) -> list[FakeClient]:
    created: list[FakeClient] = []

    def factory(**client_kwargs: Any) -> FakeClient:
        fake = FakeClient(**fake_kwargs, **client_kwargs)
        created.append(fake)
        return fake

    monkeypatch.setattr(qs_mod, "Client", factory)
    return created


def _fake_env() -> dict[str, str]:
    return {
        "QBIT_HOST": "http://localhost:8080",
        "QBIT_USERNAME": "admin",
        "QBIT_PASSWORD": "adminadmin",
    }


def _basic_logger() -> logging.Logger:
    logger = logging.getLogger("qbit_lister_test")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def patched_main(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_mod, "read_env", _fake_env)
    monkeypatch.setattr(main_mod, "logging_setup", _basic_logger)


def _torrent(
    name: str, state: str = "uploading", category: str = "test"
) -> dict[str, Any]:
    return {"name": name, "hash": name * 2, "state": state, "category": category}


# -----------------------
# driver / entry point
# -----------------------
def test_main_logs_count_and_succeeds(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
    patched_main: None,
):
    created = _install_fake(
        monkeypatch, torrents=[_torrent("a"), _torrent("b"), _torrent("c")]
    )
    caplog.set_level(logging.INFO, logger="qbit_lister_test")

    assert main_mod.main([]) == 0

    assert "Found 3 torrents" in caplog.text
    fake = created[0]
    assert fake.calls == ["auth_log_in", "torrents_info"]
    assert fake.queries[0]["category"] == "test"


def test_main_login_failure_never_queries(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
    patched_main: None,
):
    created = _install_fake(monkeypatch, login_error=LoginFailed("Fails."))
    caplog.set_level(logging.INFO, logger="qbit_lister_test")

    assert main_mod.main([]) == 1

    assert "could not log into client" in caplog.text
    assert "bad credentials" in caplog.text
    assert "torrents_info" not in created[0].calls
    assert "Found" not in caplog.text


def test_main_query_failure(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
    patched_main: None,
):
    _install_fake(
        monkeypatch, query_error=qb_exceptions.APIConnectionError("connection reset")
    )
    caplog.set_level(logging.INFO, logger="qbit_lister_test")

    assert main_mod.main([]) == 1

    assert "could not get torrents from client" in caplog.text
    assert "connection reset" in caplog.text
    assert "Found" not in caplog.text


def test_main_category_and_credentials_override(
    monkeypatch: pytest.MonkeyPatch, patched_main: None
):
    created = _install_fake(monkeypatch)

    argv = ["--category", "movies", "-u", "bob", "--host", "http://qb:9090"]
    assert main_mod.main(argv) == 0

    fake = created[0]
    assert fake.kwargs["host"] == "http://qb:9090"
    assert fake.kwargs["username"] == "bob"
    assert fake.kwargs["password"] == "adminadmin"
    assert fake.queries[0]["category"] == "movies"


def test_main_invalid_timeout(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
):
    monkeypatch.setattr(main_mod, "read_env", lambda: {"QBIT_TIMEOUT": "soon"})
    monkeypatch.setattr(main_mod, "logging_setup", _basic_logger)
    created = _install_fake(monkeypatch)
    caplog.set_level(logging.INFO, logger="qbit_lister_test")

    assert main_mod.main([]) == 1
    assert "invalid configuration" in caplog.text
    assert created == []


def test_build_filter_uses_test_category():
    options = main_mod.build_filter()
    assert options.category == "test"
    assert options.to_query() == {"category": "test"}


def test_list_torrents_cancelled_context(monkeypatch: pytest.MonkeyPatch):
    created = _install_fake(monkeypatch, torrents=[_torrent("a")])
    service = QBittorrentService(QBitConfig(), logger=_basic_logger())
    ctx = RequestContext.background()
    ctx.cancel()

    with pytest.raises(LoginError) as exc_info:
        main_mod.list_torrents(service, main_mod.build_filter(), ctx)

    assert exc_info.value.code == ErrorCode.CANCELLED
    assert created[0].calls == []


# -----------------------
# service
# -----------------------
def test_service_client_construction(monkeypatch: pytest.MonkeyPatch):
    created = _install_fake(monkeypatch)
    config = QBitConfig(
        host="https://qb.example",
        tls_skip_verify=True,
        basic_user="proxy",
        basic_pass="secret",
        timeout=5,
    )

    QBittorrentService(config, logger=_basic_logger())

    kwargs = created[0].kwargs
    assert kwargs["host"] == "https://qb.example"
    assert kwargs["VERIFY_WEBUI_CERTIFICATE"] is False
    assert kwargs["REQUESTS_ARGS"] == {"timeout": 5, "auth": ("proxy", "secret")}
    # construction alone makes no request
    assert created[0].calls == []


def test_service_default_timeout(monkeypatch: pytest.MonkeyPatch):
    created = _install_fake(monkeypatch)
    QBittorrentService(QBitConfig(), logger=_basic_logger())
    assert created[0].kwargs["REQUESTS_ARGS"] == {"timeout": DEFAULT_TIMEOUT}
    assert created[0].kwargs["VERIFY_WEBUI_CERTIFICATE"] is True


def test_login_skipped_without_credentials(monkeypatch: pytest.MonkeyPatch):
    created = _install_fake(
        monkeypatch, login_error=LoginFailed("should not be called")
    )
    service = QBittorrentService(
        QBitConfig(username="", password=""), logger=_basic_logger()
    )

    service.login(RequestContext.background())

    assert created[0].calls == []


def test_login_banned_ip(monkeypatch: pytest.MonkeyPatch):
    _install_fake(monkeypatch, login_error=Forbidden403Error("banned"))
    service = QBittorrentService(QBitConfig(), logger=_basic_logger())

    with pytest.raises(LoginError) as exc_info:
        service.login(RequestContext.background())

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    assert "banned" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, Forbidden403Error)


def test_login_connection_error(monkeypatch: pytest.MonkeyPatch):
    _install_fake(
        monkeypatch, login_error=qb_exceptions.APIConnectionError("refused")
    )
    service = QBittorrentService(QBitConfig(), logger=_basic_logger())

    with pytest.raises(LoginError) as exc_info:
        service.login(RequestContext.background())

    assert exc_info.value.code == ErrorCode.CONNECTION


def test_get_torrents_passes_deadline(monkeypatch: pytest.MonkeyPatch):
    created = _install_fake(monkeypatch, torrents=[_torrent("a")])
    service = QBittorrentService(QBitConfig(), logger=_basic_logger())
    ctx = RequestContext.background().with_timeout(30)

    torrents = service.get_torrents(TorrentFilterOptions(category="test"), ctx)

    assert len(torrents) == 1
    query = created[0].queries[0]
    assert query["category"] == "test"
    assert 0 < query["requests_args"]["timeout"] <= 30


def test_get_torrents_wraps_api_error(monkeypatch: pytest.MonkeyPatch):
    _install_fake(monkeypatch, query_error=qb_exceptions.APIError("boom"))
    service = QBittorrentService(QBitConfig(), logger=_basic_logger())

    with pytest.raises(TorrentQueryError) as exc_info:
        service.get_torrents(TorrentFilterOptions(category="test"))

    assert exc_info.value.code == ErrorCode.QUERY_FAILED
    assert exc_info.value.context["query"] == {"category": "test"}


def test_get_torrents_active_downloads(monkeypatch: pytest.MonkeyPatch):
    created = _install_fake(
        monkeypatch,
        torrents=[
            _torrent("a", state="downloading"),
            _torrent("b", state="pausedDL"),
            _torrent("c", state="stalledDL"),
            _torrent("d", state="queuedDL"),
        ],
    )
    service = QBittorrentService(QBitConfig(), logger=_basic_logger())

    active = service.get_torrents_active_downloads()

    assert [t["name"] for t in active] == ["a", "c"]
    assert created[0].queries[0] == {"status_filter": "downloading"}


def test_connection_context_logs_out(monkeypatch: pytest.MonkeyPatch):
    created = _install_fake(monkeypatch)
    service = QBittorrentService(QBitConfig(), logger=_basic_logger())

    with service.connection_context(RequestContext.background()):
        service.get_torrents(TorrentFilterOptions())

    assert created[0].calls == ["auth_log_in", "torrents_info", "auth_log_out"]


# -----------------------
# filter options
# -----------------------
def test_filter_options_full_query():
    options = TorrentFilterOptions(
        filter=TorrentFilter.STALLED_UPLOADING,
        category="tv",
        tag="keep",
        sort="added_on",
        reverse=True,
        limit=10,
        offset=5,
        hashes=("abc", "def"),
        include_trackers=True,
    )
    assert options.to_query() == {
        "status_filter": "stalled_uploading",
        "category": "tv",
        "tag": "keep",
        "sort": "added_on",
        "reverse": True,
        "limit": 10,
        "offset": 5,
        "torrent_hashes": "abc|def",
        "include_trackers": True,
    }


def test_filter_options_empty_query():
    assert TorrentFilterOptions().to_query() == {}


# -----------------------
# config
# -----------------------
def test_config_defaults_from_empty_env():
    config = QBitConfig.from_env({})
    assert config.host == "http://localhost:8080"
    assert config.username == "admin"
    assert config.password == "adminadmin"
    assert config.effective_timeout == DEFAULT_TIMEOUT


def test_config_from_env_values():
    config = QBitConfig.from_env(
        {
            "QBIT_HOST": "https://seedbox:443",
            "QBIT_USERNAME": "",
            "QBIT_PASSWORD": "",
            "QBIT_TLS_SKIP_VERIFY": "true",
            "QBIT_TIMEOUT": "15",
        }
    )
    assert config.host == "https://seedbox:443"
    assert config.username == ""
    assert config.password == ""
    assert config.tls_skip_verify is True
    assert config.effective_timeout == 15


def test_config_bad_timeout():
    with pytest.raises(ConfigError) as exc_info:
        QBitConfig.from_env({"QBIT_TIMEOUT": "1m"})
    assert exc_info.value.code == ErrorCode.CONFIG_INVALID
    assert "QBIT_TIMEOUT" in str(exc_info.value)


# -----------------------
# request context
# -----------------------
def test_background_context_never_expires():
    ctx = RequestContext.background()
    assert ctx.remaining() is None
    ctx.check()


def test_context_deadline_exceeded():
    ctx = RequestContext.background().with_timeout(0)
    time.sleep(0.01)
    assert ctx.remaining() == 0.0
    with pytest.raises(RequestCancelledError, match="deadline exceeded"):
        ctx.check()


def test_parent_cancel_propagates_to_child():
    parent = RequestContext.background()
    child = parent.with_timeout(60)
    parent.cancel()
    assert child.cancelled()
    with pytest.raises(RequestCancelledError, match="context cancelled"):
        child.check()


def test_child_deadline_never_exceeds_parent():
    parent = RequestContext.background().with_timeout(1)
    child = parent.with_timeout(60)
    assert child.deadline == parent.deadline


# -----------------------
# env and logging setup
# -----------------------
def test_read_env_process_environment_wins(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(
        read_env_mod,
        "config",
        {"QBIT_HOST": "http://from-dotenv:8080", "QBIT_USERNAME": "dotenv-user"},
    )
    monkeypatch.setenv("QBIT_HOST", "http://from-environ:9090")
    monkeypatch.setenv("LOGGING_LEVEL", "DEBUG")
    monkeypatch.setenv("UNRELATED_SECRET", "nope")

    env = read_env_mod.read_env()

    assert env["QBIT_HOST"] == "http://from-environ:9090"
    assert env["QBIT_USERNAME"] == "dotenv-user"
    assert env["LOGGING_LEVEL"] == "DEBUG"
    assert "UNRELATED_SECRET" not in env


def test_read_env_does_not_mutate_dotenv_values(monkeypatch: pytest.MonkeyPatch):
    dotenv_config = {"QBIT_HOST": "http://from-dotenv:8080"}
    monkeypatch.setattr(read_env_mod, "config", dotenv_config)
    monkeypatch.setenv("QBIT_HOST", "http://from-environ:9090")

    read_env_mod.read_env()

    assert dotenv_config == {"QBIT_HOST": "http://from-dotenv:8080"}


@pytest.mark.parametrize(
    ("env", "expected_level"),
    [
        ({}, logging.INFO),
        ({"LOGGING_LEVEL": "bogus"}, logging.INFO),
        ({"LOGGING_LEVEL": ""}, logging.INFO),
        ({"LOGGING_LEVEL": "debug"}, logging.DEBUG),
        ({"LOGGING_LEVEL": "WARNING"}, logging.WARNING),
        ({"LOGGING_LEVEL": "error"}, logging.ERROR),
    ],
)
def test_logging_setup_level(
    monkeypatch: pytest.MonkeyPatch, env: dict[str, str], expected_level: int
):
    received: list[dict[str, Any]] = []
    monkeypatch.setattr(logging_setup_mod, "read_env", lambda: env)
    monkeypatch.setattr(
        logging_setup_mod, "basicConfig", lambda **kwargs: received.append(kwargs)
    )

    logger = logging_setup_mod.logging_setup()

    assert len(received) == 1
    assert received[0]["level"] == expected_level
    assert logger.name == "qbit_lister"
