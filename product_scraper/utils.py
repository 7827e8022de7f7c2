"""
Utility functions for the product scraper.
Includes logging setup, result output and dependency checks.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from product_scraper.models import AggregateResult

logger = logging.getLogger(__name__)

LOGGER_NAME = 'product_scraper'


def setup_logging(log_level: str = 'INFO', log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up logging configuration for the scraper.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path; a timestamp is added to the file name

    Returns:
        Configured package logger
    """
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_path = log_path.with_name(f"{log_path.stem}_{timestamp}{log_path.suffix or '.log'}")
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)
        except OSError as e:
            package_logger.warning(f"Could not create log file {log_path}: {e}")

    return package_logger


def save_results_to_json(payload: Dict[str, Any], output_file: str) -> None:
    """
    Save a scrape payload to a JSON file.

    Args:
        payload: Payload produced by AggregateResult.to_payload()
        output_file: Output file path
    """
    logger.info(f"Saving results to JSON file: {output_file}")
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
    logger.info(f"Results saved successfully to {output_file}")


def format_summary(result: AggregateResult) -> str:
    """Render a short human-readable summary of an aggregate result."""
    lines = ["=" * 60, "PRODUCT SCRAPE SUMMARY", "=" * 60,
             f"Captured at: {result.timestamp.isoformat()}"]
    for source_id, source_result in result.results.items():
        if source_result.is_ok:
            note = " (no products rendered)" if source_result.ready_timed_out else ""
            lines.append(f"  {source_id}: {len(source_result.records)} products{note}")
        else:
            lines.append(f"  {source_id}: FAILED - {source_result.error}")
    lines.append("=" * 60)
    return "\n".join(lines)


def validate_dependencies() -> bool:
    """
    Validate that all required dependencies are installed.

    Returns:
        True if all dependencies are available
    """
    logger.debug("Validating required dependencies")
    missing_deps = []

    for module_name, package_name in (
        ('playwright', 'playwright'),
        ('playwright_stealth', 'playwright-stealth'),
        ('aiofiles', 'aiofiles'),
        ('yaml', 'pyyaml'),
    ):
        try:
            __import__(module_name)
            logger.debug(f"✓ {package_name} available")
        except ImportError:
            missing_deps.append(package_name)
            logger.debug(f"✗ {package_name} missing")

    if missing_deps:
        logger.error(f"Missing required dependencies: {missing_deps}. "
                     f"Install with: pip install {' '.join(missing_deps)}")
        if 'playwright' in missing_deps:
            logger.error("Also run: playwright install chromium")
        return False

    logger.info("All required dependencies are available")
    return True
