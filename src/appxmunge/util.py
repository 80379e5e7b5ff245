import argparse
import logging
import os
import sys
from typing import (
    NoReturn,
    Optional,
    Tuple,
    Any,
)


_DEFAULT_LOGGER: Optional[logging.Logger] = None
_STDERR_HANDLER: Optional[logging.StreamHandler] = None
_LOGGING_SET_UP = False


def _debug(msg: str) -> None:
    global _DEFAULT_LOGGER
    logger = _DEFAULT_LOGGER
    if logger:
        logger.debug(msg)


def _info(msg: str) -> None:
    global _DEFAULT_LOGGER
    logger = _DEFAULT_LOGGER
    if logger:
        logger.info(msg)
    # No fallback print for info


def _error(msg: str, *, prog: Optional[str] = None) -> "NoReturn":
    global _DEFAULT_LOGGER
    logger = _DEFAULT_LOGGER
    if logger:
        logger.error(msg)
    else:
        me = os.path.basename(sys.argv[0]) if prog is None else prog
        print(
            f"{me}: error: {msg}",
            file=sys.stderr,
        )
    sys.exit(1)


def _warn(msg: str, *, prog: Optional[str] = None) -> None:
    global _DEFAULT_LOGGER
    logger = _DEFAULT_LOGGER
    if logger:
        logger.warning(msg)
    else:
        me = os.path.basename(sys.argv[0]) if prog is None else prog

        print(
            f"{me}: warning: {msg}",
            file=sys.stderr,
        )


class ColorizedArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        _error(message, prog=self.prog)


def _check_color() -> Tuple[bool, Optional[str]]:
    requested_color = os.environ.get(
        "APPXMUNGE_COLORS", "never" if "NO_COLOR" in os.environ else "auto"
    )
    bad_request = None
    if requested_color not in {"auto", "always", "never"}:
        bad_request = requested_color
        requested_color = "auto"

    if requested_color == "auto":
        stderr_color = sys.stderr.isatty()
    else:
        stderr_color = requested_color == "always"
    return stderr_color, bad_request


def program_name() -> str:
    name = os.path.basename(sys.argv[0])
    if name.endswith(".py"):
        name = name[:-3]
    if name == "__main__":
        name = os.path.basename(os.path.dirname(sys.argv[0]))
    if name == "appxmunge_cmd":
        name = "appxmunge"
    return name


def change_log_level(log_level: int) -> None:
    if _DEFAULT_LOGGER is not None:
        _DEFAULT_LOGGER.setLevel(log_level)
    logging.getLogger().setLevel(log_level)


def setup_logging(*, reconfigure_logging: bool = False) -> None:
    global _LOGGING_SET_UP, _DEFAULT_LOGGER, _STDERR_HANDLER
    if _LOGGING_SET_UP and not reconfigure_logging:
        raise RuntimeError(
            "Logging has already been configured."
            " Use reconfigure_logging=True if you need to reconfigure it"
        )
    stderr_color, bad_request = _check_color()

    color_format = (
        "{bold}{name}{reset}: {bold}{log_color}{levelnamelower}{reset}: {message}"
    )
    colorless_format = "{name}: {levelnamelower}: {message}"

    existing_stderr_handler = _STDERR_HANDLER
    logger = logging.getLogger()
    if existing_stderr_handler is not None:
        logger.removeHandler(existing_stderr_handler)

    if stderr_color:
        import colorlog

        stderr_handler: logging.StreamHandler = colorlog.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            colorlog.ColoredFormatter(color_format, style="{", force_color=True)
        )
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(colorless_format, style="{"))
    _STDERR_HANDLER = stderr_handler
    logger.addHandler(stderr_handler)

    name = program_name()

    old_factory = logging.getLogRecordFactory()

    def record_factory(
        *args: Any, **kwargs: Any
    ) -> logging.LogRecord:  # pragma: no cover
        record = old_factory(*args, **kwargs)
        record.levelnamelower = record.levelname.lower()
        return record

    if not _LOGGING_SET_UP:
        logging.setLogRecordFactory(record_factory)

    logging.getLogger().setLevel(logging.INFO)
    _DEFAULT_LOGGER = logging.getLogger(name)

    if bad_request:
        _DEFAULT_LOGGER.warning(
            f'Invalid color request for "{bad_request}" in APPXMUNGE_COLORS.'
            ' Resetting to "auto".'
        )

    _LOGGING_SET_UP = True
