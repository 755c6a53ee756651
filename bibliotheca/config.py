"""
Runtime settings read from the environment.

A ``.env`` file in the working directory is loaded first, so local
overrides do not need to be exported. Values are read each time a
``Settings`` is built; the module-level ``settings`` instance reflects the
environment at import time.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from .hashing import DEFAULT_ITERATIONS

load_dotenv()


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default)


@dataclass
class Settings:
    # SQLite file; empty keeps everything in memory
    db_file: str = field(default_factory=lambda: _env("BIBLIOTHECA_DB_FILE"))

    # PBKDF2 work factor for newly hashed passwords
    hash_iterations: int = field(
        default_factory=lambda: int(_env("BIBLIOTHECA_HASH_ITERATIONS", str(DEFAULT_ITERATIONS)))
    )

    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: _env("BIBLIOTHECA_LOG_FILE") or None)

    @property
    def uses_sqlite(self) -> bool:
        return bool(self.db_file.strip())


settings = Settings()
