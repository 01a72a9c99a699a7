"""Configuration: environment ``Settings`` plus the YAML tunables loader.

``src.main`` builds the one ``Settings`` instance at startup; nothing here
reads the environment at import time.
"""

from src.config.loader import load_config
from src.config.settings import Settings

__all__ = ["Settings", "load_config"]
