"""
Configuration for the builder API.

Values resolve env -> default. A ``.env`` file at the repository root is
loaded first, so local overrides do not need to be exported in the shell.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), '.env'))


def _default_db_path() -> str:
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'projects.db')


def _env(name: str, default: str) -> str:
    value = os.environ.get(name, '').strip()
    return value if value else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name, '').strip().lower()
    if not value:
        return default
    return value in ('1', 'true', 'yes', 'on')


@dataclass
class Settings:
    """Effective configuration of one API process."""
    db_path: str = ''
    ai_url: str = ''
    ai_api_key: Optional[str] = None
    ai_timeout: float = 30.0
    ai_rate_limit: int = 2
    ai_rate_window: float = 60.0
    allow_self_loops: bool = False
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Settings':
        """Resolve every setting from the environment.

        Variables:
            BUILDER_DB_PATH          SQLite file for project documents
            BUILDER_AI_URL           generation service endpoint
            BUILDER_AI_API_KEY       bearer token for the generation service
            BUILDER_AI_TIMEOUT       seconds per generation request
            BUILDER_AI_RATE_LIMIT    generation requests per caller per window
            BUILDER_AI_RATE_WINDOW   length of the rate limit window in seconds
            BUILDER_ALLOW_SELF_LOOPS permit edges from a component to itself
            BUILDER_LOG_LEVEL        logging level name
        """
        db_path = _env('BUILDER_DB_PATH', _default_db_path())
        os.makedirs(os.path.dirname(db_path) or '.', exist_ok=True)
        return cls(
            db_path=db_path,
            ai_url=_env('BUILDER_AI_URL', ''),
            ai_api_key=os.environ.get('BUILDER_AI_API_KEY') or None,
            ai_timeout=float(_env('BUILDER_AI_TIMEOUT', '30')),
            ai_rate_limit=int(_env('BUILDER_AI_RATE_LIMIT', '2')),
            ai_rate_window=float(_env('BUILDER_AI_RATE_WINDOW', '60')),
            allow_self_loops=_env_bool('BUILDER_ALLOW_SELF_LOOPS', False),
            log_level=_env('BUILDER_LOG_LEVEL', 'INFO').upper(),
        )


def configure_logging(level: str = 'INFO'):
    """Install a basic root handler for command-line runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
