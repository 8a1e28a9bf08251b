"""Application configuration for the reCAPTCHA solver.

Central configuration module powered by Pydantic v2.  Settings are loaded from
environment variables (with ``.env`` file support) and an optional
``config/solver_config.json`` file.

Key exports:
    SolverSettings: Root settings model (instantiate once per solver).
    DEBUG_BINDING_NAME: Page-exposed function used by in-page debug logging.
    BASE_DIR / CONFIG_DIR / LOGS_DIR: Canonical project paths.
"""

# pylint: disable=no-member

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Base Paths
# ---------------------------------------------------------------------------
BASE_DIR: Path = Path(__file__).parent.parent
"""Project root directory (parent of ``core/``)."""

CONFIG_DIR: Path = BASE_DIR / "config"
"""Directory containing optional runtime configuration files."""

LOGS_DIR: Path = BASE_DIR / "logs"
"""Directory for log output files."""

DEBUG_BINDING_NAME = "___pepr_cs"
"""Name of the window function in-page scripts report debug events to."""

logger: logging.Logger = logging.getLogger(__name__)


class SolverSettings(BaseSettings):
    """Root configuration model for the solver.

    All fields can be set via environment variables or a ``.env`` file.
    The model also merges values from ``config/solver_config.json``
    during post-init.

    Section overview:
        * **Core** -- log level, headless mode for the CLI.
        * **Behaviour** -- visual feedback, strict mode, filtering
          switches.
        * **Retry loop** -- retry budget, element wait timeout, pass
          interval, quiet pass bound.
        * **Provider** -- selected provider id, auth token and per-provider
          polling parameters.
    """

    # Core
    log_level: str = "INFO"
    headless: bool = True

    # Behaviour
    visual_feedback: bool = True
    throw_on_error: bool = False
    solve_in_viewport_only: bool = False
    solve_score_based: bool = False
    solve_inactive_challenges: bool = False
    # Force the content-script debug channel even if DEBUG is off
    debug_binding: bool = False

    # Retry loop
    retries_limit: int = Field(default=0, ge=0)
    # Milliseconds, passed to Playwright waits
    captcha_element_wait_timeout: int = Field(default=30000, gt=0)
    # Seconds between two scan passes
    pass_interval: float = Field(default=2.5, gt=0)
    # Consecutive passes without new widgets tolerated before failing
    max_quiet_passes: int = Field(default=20, ge=0)

    # Provider
    # Options: captcha-forwarder, 2captcha
    provider_id: str = "captcha-forwarder"
    provider_token: Optional[str] = None
    forwarder_endpoint: str = "https://kript.duckdns.org/captcha-forwarder"
    forwarder_polling_interval: float = Field(default=2.0, gt=0)
    forwarder_timeout: float = Field(default=180.0, gt=0)
    twocaptcha_polling_interval: float = Field(default=5.0, gt=0)
    twocaptcha_timeout: float = Field(default=180.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Merge overrides from ``config/solver_config.json``."""
        self._load_config_file(CONFIG_DIR / "solver_config.json")

    def _load_config_file(self, config_path: Path) -> None:
        """Apply known keys of a JSON config file onto this instance.

        Unknown keys are ignored; an unreadable file is logged and skipped.

        Args:
            config_path: Path to the JSON file.
        """
        if not config_path.exists():
            return

        try:
            data: Dict[str, Any] = json.loads(
                config_path.read_text(encoding="utf-8")
            )
        except Exception as exc:
            logger.warning(
                "Failed to load %s: %s", config_path.name, exc
            )
            return

        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: top-level value is not an object",
                config_path.name,
            )
            return

        for key, value in data.items():
            if key in type(self).model_fields:
                setattr(self, key, value)
            else:
                logger.debug("Ignoring unknown config key: %s", key)

    def content_script_options(
        self, debug_enabled: bool = False
    ) -> Dict[str, Any]:
        """Build the option payload handed to in-page scripts.

        Args:
            debug_enabled: Whether the content-script logger is active.

        Returns:
            ``{"visualFeedback": ..., "debugBinding": name-or-None}``.
        """
        use_binding = debug_enabled or self.debug_binding
        return {
            "visualFeedback": self.visual_feedback,
            "debugBinding": DEBUG_BINDING_NAME if use_binding else None,
        }

    def provider_options(self, provider_id: str) -> Dict[str, Any]:
        """Return the default option dict for a built-in provider.

        Args:
            provider_id: ``captcha-forwarder`` or ``2captcha``.

        Returns:
            Option dict understood by that provider's ``get_solutions``.
        """
        if provider_id == "2captcha":
            return {
                "polling_interval": self.twocaptcha_polling_interval,
                "timeout": self.twocaptcha_timeout,
            }
        return {
            "endpoint": self.forwarder_endpoint,
            "polling_interval": self.forwarder_polling_interval,
            "timeout": self.forwarder_timeout,
        }
