# -*- coding: utf-8 -*-
"""
Engine configuration for the execution driver and the HTTP server
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

# ===============================================================================
# Engine Configuration
# ===============================================================================

@dataclass
class EngineConfiguration:
    """Execution and server settings"""

    # Execution settings
    default_rounds: int = 50
    max_rounds: int = 100000
    progress_interval: int = 100   # rounds between progress callbacks
    warn_on_non_finite: bool = True

    # Server settings
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])

    def __post_init__(self):
        if self.default_rounds < 1:
            raise ValueError("'default_rounds' must be at least 1.")
        if self.max_rounds < self.default_rounds:
            raise ValueError("'max_rounds' must not be smaller than 'default_rounds'.")
        if self.progress_interval < 1:
            raise ValueError("'progress_interval' must be at least 1.")

    @classmethod
    def default(cls) -> 'EngineConfiguration':
        """Get default configuration"""
        return cls()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'EngineConfiguration':
        """
        Build a configuration from SD_* environment variables, falling back to
        the defaults for unset ones:

            SD_DEFAULT_ROUNDS, SD_MAX_ROUNDS, SD_PROGRESS_INTERVAL,
            SD_WARN_NON_FINITE (1/0, true/false), SD_CORS_ORIGINS (comma-separated)
        """
        environ = os.environ if environ is None else environ
        config = {}

        for key, name in (('default_rounds', 'SD_DEFAULT_ROUNDS'),
                          ('max_rounds', 'SD_MAX_ROUNDS'),
                          ('progress_interval', 'SD_PROGRESS_INTERVAL')):
            if name in environ:
                try:
                    config[key] = int(environ[name])
                except ValueError:
                    raise ValueError(f"{name} must be an integer, got '{environ[name]}'.") from None

        if 'SD_WARN_NON_FINITE' in environ:
            config['warn_on_non_finite'] = environ['SD_WARN_NON_FINITE'].strip().lower() in ('1', 'true', 'yes', 'on')

        if 'SD_CORS_ORIGINS' in environ:
            config['cors_origins'] = [origin.strip() for origin in environ['SD_CORS_ORIGINS'].split(',')
                                      if origin.strip()]

        return cls(**config)
