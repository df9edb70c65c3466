from logging import DEBUG, ERROR, INFO, WARNING, Logger, basicConfig, getLogger

from qbit_lister.utils.read_env import read_env

LEVELS = {"DEBUG": DEBUG, "INFO": INFO, "WARNING": WARNING, "ERROR": ERROR}


def logging_setup() -> Logger:
    logging_level = INFO
    try:
        str_logging_level = read_env()["LOGGING_LEVEL"] or ""
        logging_level = LEVELS.get(str_logging_level.upper(), INFO)
    except KeyError:
        pass
    finally:
        basicConfig(
            level=logging_level, format="%(asctime)s - %(levelname)s - %(message)s"
        )
    return getLogger(name="qbit_lister")
