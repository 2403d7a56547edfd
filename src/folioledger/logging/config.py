import logging

SHORT_LEVELS = {
    logging.DEBUG: "DBG",
    logging.INFO: "INF",
    logging.WARNING: "WRN",
    logging.ERROR: "ERR",
    logging.CRITICAL: "CRT",
}


class ProfessionalFormatter(logging.Formatter):
    """``time | LVL | logger | message`` lines for the folioledger command."""

    def __init__(self, datefmt: str = "%Y-%m-%d %H:%M:%S") -> None:
        super().__init__(
            fmt="%(asctime)s | %(shortlevel)-3s | %(name)s | %(message)s",
            datefmt=datefmt,
        )

    def format(self, record: logging.LogRecord) -> str:
        record.shortlevel = SHORT_LEVELS.get(record.levelno, record.levelname[:3])
        return super().format(record)


def configure_logging(level: int = logging.WARNING) -> logging.Logger:
    """Install the short-level stream handler on the root logger and return it.

    Calling it again only adjusts the level; handlers are never stacked.
    """
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(ProfessionalFormatter())
        root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return root_logger
