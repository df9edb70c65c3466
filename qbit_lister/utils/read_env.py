from collections.abc import Mapping
from os import environ

from dotenv import dotenv_values

config = dotenv_values(".env")

# process environment wins over .env for the keys this program reads
ENV_PREFIXES = ("QBIT_", "LOGGING_LEVEL")


def read_env() -> Mapping[str, str | None]:
    if config is None:
        raise ValueError("No .env file found or it is empty.")
    merged: dict[str, str | None] = dict(config)
    merged.update(
        {key: value for key, value in environ.items() if key.startswith(ENV_PREFIXES)}
    )
    return merged
