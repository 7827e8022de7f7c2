"""
Configuration module for the product scraper.
Handles browser launch settings, per-operation timeouts, retry policy and debug options.
Supports YAML configuration files and environment variable overrides.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Any, FrozenSet, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_BROWSER_ARGS = (
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--no-first-run',
    '--no-zygote',
    '--disable-gpu',
)

DEFAULT_BLOCKED_RESOURCE_KINDS = frozenset({'stylesheet', 'font', 'image', 'media', 'other'})


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class LaunchConfig:
    """Immutable browser launch settings handed to the session manager."""

    headless: bool = True
    executable_path: Optional[str] = None
    args: Tuple[str, ...] = DEFAULT_BROWSER_ARGS
    user_agent: str = DEFAULT_USER_AGENT
    enable_stealth: bool = True
    blocked_resource_kinds: FrozenSet[str] = DEFAULT_BLOCKED_RESOURCE_KINDS
    navigation_timeout: float = 10.0


class ScraperConfig:
    """Configuration class for the product scraper with all settings."""

    def __init__(self):
        logger.debug("Initializing ScraperConfig")

        # Timeout settings (in seconds)
        self.navigation_timeout = 10.0
        self.ready_timeout = 30.0
        self.interstitial_timeout = 10.0
        self.challenge_reload_timeout = 15.0

        # Retry settings
        self.max_attempts = 3
        self.backoff_base = 1.0

        # Browser settings
        self.browser_headless = True
        self.browser_executable_path: Optional[str] = None
        self.browser_args = list(DEFAULT_BROWSER_ARGS)
        self.user_agent = DEFAULT_USER_AGENT
        self.enable_stealth = True
        self.blocked_resource_kinds = set(DEFAULT_BLOCKED_RESOURCE_KINDS)

        # Debug settings
        self.debug = False
        self.debug_dir = "debug_artifacts"

        # Server settings
        self.server_host = "0.0.0.0"
        self.server_port = 3001

        # Logging settings
        self.log_level = "INFO"
        self.log_file: Optional[str] = None

        # Per-source selector overrides, applied by sources.load_sources
        self.source_overrides: Dict[str, Dict[str, Any]] = {}

    def update_from_yaml(self, yaml_config: Dict[str, Any]) -> None:
        """
        Update configuration from YAML config dictionary.

        Args:
            yaml_config: Dictionary loaded from YAML file
        """
        logger.debug(f"Updating configuration from YAML with {len(yaml_config)} top-level keys")

        if 'timeouts' in yaml_config:
            timeouts = yaml_config['timeouts'] or {}
            if 'navigation' in timeouts:
                self.navigation_timeout = float(timeouts['navigation'])
            if 'ready' in timeouts:
                self.ready_timeout = float(timeouts['ready'])
            if 'interstitial' in timeouts:
                self.interstitial_timeout = float(timeouts['interstitial'])
            if 'challenge_reload' in timeouts:
                self.challenge_reload_timeout = float(timeouts['challenge_reload'])

        if 'retry' in yaml_config:
            retry = yaml_config['retry'] or {}
            if 'max_attempts' in retry:
                self.max_attempts = int(retry['max_attempts'])
            if 'backoff_base' in retry:
                self.backoff_base = float(retry['backoff_base'])

        if 'browser' in yaml_config:
            browser = yaml_config['browser'] or {}
            if 'headless' in browser:
                self.browser_headless = bool(browser['headless'])
            if 'executable_path' in browser:
                self.browser_executable_path = browser['executable_path']
            if 'args' in browser:
                self.browser_args = list(browser['args'])
            if 'user_agent' in browser:
                self.user_agent = browser['user_agent']
            if 'enable_stealth' in browser:
                self.enable_stealth = bool(browser['enable_stealth'])
            if 'blocked_resource_kinds' in browser:
                self.blocked_resource_kinds = {str(kind).lower() for kind in browser['blocked_resource_kinds']}

        if 'debug' in yaml_config:
            debug = yaml_config['debug'] or {}
            if 'enabled' in debug:
                self.debug = bool(debug['enabled'])
            if 'dir' in debug:
                self.debug_dir = debug['dir']

        if 'server' in yaml_config:
            server = yaml_config['server'] or {}
            if 'host' in server:
                self.server_host = server['host']
            if 'port' in server:
                self.server_port = int(server['port'])

        if 'logging' in yaml_config:
            logging_config = yaml_config['logging'] or {}
            if 'level' in logging_config:
                self.log_level = logging_config['level']
            if 'file' in logging_config:
                self.log_file = logging_config['file']

        if 'sources' in yaml_config:
            self.source_overrides = dict(yaml_config['sources'] or {})

        logger.info("Configuration updated from YAML")

    def update_from_env(self) -> None:
        """Update configuration from environment variables."""
        logger.debug("Updating configuration from environment variables")

        env_mappings = {
            'PUPPETEER_EXECUTABLE_PATH': ('browser_executable_path', str),
            'SCRAPER_BROWSER_PATH': ('browser_executable_path', str),
            'SCRAPER_DEBUG': ('debug', _parse_bool),
            'SCRAPER_HEADLESS': ('browser_headless', _parse_bool),
            'SCRAPER_NAVIGATION_TIMEOUT': ('navigation_timeout', float),
            'SCRAPER_READY_TIMEOUT': ('ready_timeout', float),
            'SCRAPER_MAX_ATTEMPTS': ('max_attempts', int),
            'SCRAPER_BACKOFF_BASE': ('backoff_base', float),
            'SCRAPER_LOG_LEVEL': ('log_level', str),
            'HOST': ('server_host', str),
            'PORT': ('server_port', int),
        }

        updated_from_env = []
        for env_var, (attr, converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None and value != '':
                try:
                    setattr(self, attr, converter(value))
                    updated_from_env.append(env_var)
                    logger.debug(f"Set {attr} from {env_var}: {value}")
                except (ValueError, TypeError) as e:
                    logger.warning(f"Invalid value for {env_var}: {value} - {e}")

        if updated_from_env:
            logger.info(f"Updated configuration from environment variables: {updated_from_env}")
        else:
            logger.debug("No environment variables found for configuration")

    def validate(self) -> bool:
        """Validate configuration values, clamping anything out of range."""
        logger.debug("Validating configuration values")

        validation_warnings = []

        if self.max_attempts < 1:
            validation_warnings.append(f"max_attempts ({self.max_attempts}) should be at least 1")
            self.max_attempts = 1

        if self.backoff_base <= 0:
            validation_warnings.append(f"backoff_base ({self.backoff_base}) should be positive")
            self.backoff_base = 1.0

        for attr in ('navigation_timeout', 'ready_timeout', 'interstitial_timeout', 'challenge_reload_timeout'):
            if getattr(self, attr) <= 0:
                validation_warnings.append(f"{attr} should be positive")
                setattr(self, attr, 1.0)

        for warning in validation_warnings:
            logger.warning(f"Configuration validation warning: {warning}")

        if validation_warnings:
            logger.info(f"Configuration validation completed with {len(validation_warnings)} warnings")
        else:
            logger.debug("Configuration validation completed successfully")

        return True

    def launch_config(self) -> LaunchConfig:
        """Snapshot the browser settings into an immutable LaunchConfig."""
        return LaunchConfig(
            headless=self.browser_headless,
            executable_path=self.browser_executable_path or None,
            args=tuple(self.browser_args),
            user_agent=self.user_agent,
            enable_stealth=self.enable_stealth,
            blocked_resource_kinds=frozenset(kind.lower() for kind in self.blocked_resource_kinds),
            navigation_timeout=self.navigation_timeout,
        )

    def __str__(self) -> str:
        return f"""Scraper Configuration:
- Timeouts: navigation={self.navigation_timeout}s, ready={self.ready_timeout}s, interstitial={self.interstitial_timeout}s
- Retry: {self.max_attempts} attempts, backoff base {self.backoff_base}s
- Headless: {self.browser_headless}
- Stealth: {self.enable_stealth}
- Debug artifacts: {self.debug_dir if self.debug else 'disabled'}
"""


# Global configuration instance
config = ScraperConfig()
