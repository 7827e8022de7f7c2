"""
Browser fingerprint module for anti-detection.
Pairs the configured user agent with a realistic desktop viewport and an Indian locale,
matching the storefronts being scraped.
"""

import random
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# Common desktop viewport sizes (width, height)
COMMON_VIEWPORTS = [
    (1920, 1080),  # Full HD
    (1366, 768),  # Common laptop
    (1536, 864),  # Common laptop
    (1440, 900),  # MacBook
    (1600, 900),  # Wide screen
]

LOCALE = "en-IN"
TIMEZONE = "Asia/Kolkata"


def build_fingerprint(user_agent: str, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """
    Build browser context settings for one session.

    Args:
        user_agent: User agent string to present instead of the headless default
        rng: Optional random generator (seeded in tests)

    Returns:
        Dictionary with viewport, user_agent, locale and timezone_id
    """
    rng = rng or random
    width, height = rng.choice(COMMON_VIEWPORTS)
    fingerprint = {
        'viewport': {'width': width, 'height': height},
        'user_agent': user_agent,
        'locale': LOCALE,
        'timezone_id': TIMEZONE,
        'extra_http_headers': {'Accept-Language': f"{LOCALE},en;q=0.9"},
    }
    logger.debug(f"Built fingerprint: {width}x{height}, {user_agent[:50]}...")
    return fingerprint
