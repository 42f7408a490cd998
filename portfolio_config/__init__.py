"""
portfolio_config -- single public entrypoint for synthesis settings.

Responsibility:
    ``get_active_settings()`` is the only way runtime code obtains settings.
    It reads the YAML file named by its argument or by the
    ``PORTFOLIO_SYNTH_CONFIG`` environment variable, and falls back to the
    built-in defaults when neither is given.

Architecture position:
    Configuration.  Sits above ``portfolio_kernel`` and ``portfolio_engines``;
    neither of them may import this package.  ``portfolio_config.bridges``
    translates settings into engine rule objects.

Failure modes:
    - ``FileNotFoundError`` -- the named file does not exist.
    - ``ConfigurationError`` -- unknown section/key or invalid value.

Every successful call emits a ``PORTFOLIO_CONFIG_TRACE`` log record with the
source and checksum of the settings in force.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from portfolio_config.loader import compute_checksum, load_settings
from portfolio_config.schema import SynthesisSettings

_logger = logging.getLogger("portfolio_kernel.config")

CONFIG_ENV_VAR = "PORTFOLIO_SYNTH_CONFIG"


def get_active_settings(path: Path | str | None = None) -> SynthesisSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: YAML file to load.  Defaults to ``$PORTFOLIO_SYNTH_CONFIG``,
            then to the built-in defaults.
    """
    source = path or os.environ.get(CONFIG_ENV_VAR)
    if source:
        settings = load_settings(Path(source))
    else:
        settings = SynthesisSettings(checksum=compute_checksum({}))

    _logger.info(
        "PORTFOLIO_CONFIG_TRACE",
        extra={
            "trace_type": "PORTFOLIO_CONFIG_TRACE",
            "source": settings.source,
            "checksum": settings.checksum,
            "seed": settings.batch.seed,
            "chunk_size": settings.batch.chunk_size,
        },
    )
    return settings


__all__ = [
    "CONFIG_ENV_VAR",
    "SynthesisSettings",
    "get_active_settings",
]
