import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )
    # SQL echo is controlled by the engine, keep the root logger quiet
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
