import logging
import os

from pydantic import BaseModel

from omo.auth import AUTH_FILE
from omo.provider import DEFAULT_MODEL

LOG_FORMAT = "%(asctime)s:%(name)s:%(levelname)s:%(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Settings(BaseModel):
    """Runtime configuration for the terminal client."""

    model: str = DEFAULT_MODEL
    cwd: str = ""
    max_rounds: int | None = None
    read_timeout: float | None = None
    auth_path: str = AUTH_FILE
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``OMO_*`` environment variables."""
        env = {
            "model": os.getenv("OMO_MODEL"),
            "cwd": os.getenv("OMO_CWD"),
            "max_rounds": os.getenv("OMO_MAX_ROUNDS"),
            "read_timeout": os.getenv("OMO_READ_TIMEOUT"),
            "auth_path": os.getenv("OMO_AUTH_FILE"),
            "log_level": os.getenv("LOG_LEVEL"),
        }
        return cls(**{k: v for k, v in env.items() if v})

    def working_directory(self) -> str:
        return os.path.abspath(self.cwd or os.getcwd())


def configure_logging(level: str = "WARNING", log_file: str | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
