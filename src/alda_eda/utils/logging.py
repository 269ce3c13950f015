"""structlog setup for the command-line runs.

Pipeline modules log through ``structlog.get_logger()`` and model modules
through plain ``logging``; both end up on the root logger, where each
handler renders the shared event dict its own way.
"""

import logging
import sys
from pathlib import Path

import structlog

# Sampler internals log per-iteration detail at DEBUG
QUIET_LOGGERS = ("jax", "numpyro", "absl")

_PRE_CHAIN = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _handler(
    handler: logging.Handler,
    level: int,
    renderer: structlog.types.Processor,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
            foreign_pre_chain=_PRE_CHAIN,
        )
    )
    return handler


def setup_pipeline_logging(
    verbose: bool = False,
    log_file: Path | str | None = None,
) -> None:
    """Route pipeline and model logs to stderr and, optionally, a JSON file.

    stderr gets INFO (DEBUG with ``verbose``) rendered for reading; colors
    are used only on a terminal. The log file, when given, receives every
    DEBUG record as one JSON object per line, so per-entity failures and
    sampler settings can be inspected after a run.

    Calling it again replaces the handlers installed by the previous call.
    """
    structlog.configure(
        processors=[
            *_PRE_CHAIN,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    root.addHandler(
        _handler(
            logging.StreamHandler(sys.stderr),
            logging.DEBUG if verbose else logging.INFO,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        )
    )

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(
            _handler(
                logging.FileHandler(log_file, encoding="utf-8"),
                logging.DEBUG,
                structlog.processors.JSONRenderer(),
            )
        )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
