"""
YAML configuration loader for the product scraper.
"""

import logging
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

SAMPLE_CONFIG = """# Product Scraper Configuration
# All settings are optional - defaults will be used if not specified

# Timeout Settings (seconds)
timeouts:
  navigation: 10
  ready: 30
  interstitial: 10
  challenge_reload: 15

# Retry Settings
retry:
  max_attempts: 3
  backoff_base: 1.0  # seconds, doubled after every failed attempt

# Browser Settings
browser:
  headless: true
  executable_path: null  # null = Playwright's bundled Chromium
  enable_stealth: true
  blocked_resource_kinds:
    - stylesheet
    - font
    - image
    - media
    - other
  args:
    - --no-sandbox
    - --disable-setuid-sandbox
    - --disable-dev-shm-usage
    - --disable-accelerated-2d-canvas
    - --no-first-run
    - --no-zygote
    - --disable-gpu

# Debug Settings
debug:
  enabled: false  # save a screenshot and HTML when products never render
  dir: debug_artifacts

# HTTP Server Settings
server:
  host: 0.0.0.0
  port: 3001

# Logging Settings
logging:
  level: INFO  # DEBUG, INFO, WARNING, ERROR
  file: null  # Optional log file path

# Per-source overrides (selectors are maintained configuration)
# sources:
#   flipkart:
#     cap: 10
#     container_selector: "._75nlfW"
#     fields:
#       price: ".Nx9bqj._4b5DiR"
"""


class ConfigLoader:
    """Handles loading of YAML configuration files."""

    @staticmethod
    def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Search order:
        1. Explicit config_path if provided
        2. config.yaml in current directory
        3. config.yaml in project root
        4. Returns empty dict (will use defaults)

        Args:
            config_path: Optional explicit path to config file

        Returns:
            Dictionary of configuration values
        """
        if config_path:
            config_file = Path(config_path)
            if not config_file.exists():
                logger.warning(f"Config file not found at explicit path: {config_path}")
                return {}
        else:
            config_file = Path("config.yaml")
            if not config_file.exists():
                config_file = Path(__file__).parent.parent / "config.yaml"
                if not config_file.exists():
                    logger.info("No config.yaml found, using defaults")
                    return {}

        try:
            logger.info(f"Loading configuration from: {config_file}")
            with open(config_file, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML config file: {e}")
            raise ValueError(f"Invalid YAML in config file: {e}")

        if not isinstance(config_data, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping at the top level")

        logger.info(f"Successfully loaded configuration from {config_file}")
        return config_data

    @staticmethod
    def create_sample_config(output_path: Path = Path("config.yaml")) -> None:
        """
        Create a sample config.yaml file with all available options.

        Args:
            output_path: Path where to create the sample config file
        """
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(SAMPLE_CONFIG)
        logger.info(f"Sample config file created at: {output_path}")
