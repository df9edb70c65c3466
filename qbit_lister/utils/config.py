from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace

from qbit_lister.utils.qbit_lister_errors import ConfigError

DEFAULT_HOST = "http://localhost:8080"
DEFAULT_USERNAME = "admin"
DEFAULT_PASSWORD = "adminadmin"
DEFAULT_TIMEOUT = 60


@dataclass(frozen=True)
class QBitConfig:
    """
    Connection settings for a qBittorrent WebUI.

    Attributes:
        host: WebUI address in URL form, e.g. http://localhost:8080
        username: WebUI username (empty together with password skips login)
        password: WebUI password
        tls_skip_verify: Skip certificate validation for https hosts
        basic_user: HTTP basic auth username for a proxy in front of the WebUI
        basic_pass: HTTP basic auth password
        timeout: Request timeout in seconds; values <= 0 mean DEFAULT_TIMEOUT
    """

    host: str = DEFAULT_HOST
    username: str = DEFAULT_USERNAME
    password: str = DEFAULT_PASSWORD
    tls_skip_verify: bool = False
    basic_user: str = ""
    basic_pass: str = ""
    timeout: int = 0

    @property
    def effective_timeout(self) -> int:
        return self.timeout if self.timeout > 0 else DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, env: Mapping[str, str | None]) -> QBitConfig:
        """
        Build a config from QBIT_* keys, falling back to the defaults.

        Raises:
            ConfigError: If QBIT_TIMEOUT is not an integer
        """
        raw_timeout = env.get("QBIT_TIMEOUT") or "0"
        try:
            timeout = int(raw_timeout)
        except ValueError as e:
            raise ConfigError(
                f"QBIT_TIMEOUT must be an integer, got {raw_timeout!r}",
                key="QBIT_TIMEOUT",
            ) from e

        return cls(
            host=env.get("QBIT_HOST") or DEFAULT_HOST,
            username=_get(env, "QBIT_USERNAME", DEFAULT_USERNAME),
            password=_get(env, "QBIT_PASSWORD", DEFAULT_PASSWORD),
            tls_skip_verify=(env.get("QBIT_TLS_SKIP_VERIFY") or "").lower()
            in {"1", "true", "yes"},
            basic_user=env.get("QBIT_BASIC_USER") or "",
            basic_pass=env.get("QBIT_BASIC_PASS") or "",
            timeout=timeout,
        )

    def with_overrides(self, **overrides: str | None) -> QBitConfig:
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


def _get(env: Mapping[str, str | None], key: str, default: str) -> str:
    # an explicitly empty value is kept, it disables login
    value = env.get(key)
    return default if value is None else value
