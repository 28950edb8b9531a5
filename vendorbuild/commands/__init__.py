from .build import build
from .clean import clean
from .config import config
from .deps import deps
from .log import log
from .version import version

__all__ = ["build", "clean", "config", "deps", "log", "version"]
