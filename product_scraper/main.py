#!/usr/bin/env python3
"""
Main entry point for the product scraper.
Scrapes a query from the command line or serves the HTTP API.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from product_scraper.config import config
from product_scraper.config_loader import ConfigLoader
from product_scraper.errors import InvalidQueryError
from product_scraper.orchestrator import ScrapeOrchestrator
from product_scraper.utils import setup_logging, save_results_to_json, format_summary, validate_dependencies

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='product-scraper',
        description="Scrape Amazon and Flipkart search results for a product query.",
    )
    parser.add_argument('query', nargs='*', help="Search terms, e.g. pixel 9")
    parser.add_argument('--config', help="Path to config.yaml (default: ./config.yaml)")
    parser.add_argument('--output', help="Also save the JSON payload to this file")
    parser.add_argument('--serve', action='store_true', help="Run the HTTP API instead of a single scrape")
    parser.add_argument('--sample-config', action='store_true', help="Write a sample config.yaml and exit")
    return parser


def load_configuration(config_path: Optional[str] = None) -> None:
    """Apply config.yaml then environment overrides to the global config."""
    try:
        yaml_config = ConfigLoader.load_config(config_path)
        if yaml_config:
            config.update_from_yaml(yaml_config)
    except ValueError as e:
        logger.warning(f"Could not load config.yaml, using defaults: {e}")
    config.update_from_env()
    config.validate()


def serve() -> None:
    import uvicorn

    logger.info(f"Server running on {config.server_host}:{config.server_port}")
    uvicorn.run('product_scraper.api:app', host=config.server_host, port=config.server_port,
                log_level=config.log_level.lower())


def run_query(query: str, output: Optional[str] = None) -> int:
    orchestrator = ScrapeOrchestrator(config)
    try:
        result = asyncio.run(orchestrator.scrape(query))
    except InvalidQueryError as e:
        logger.error(f"Invalid query: {e}")
        return 2

    payload = result.to_payload()
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    print(format_summary(result), file=sys.stderr)

    if output:
        save_results_to_json(payload, output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the product scraper."""
    args = build_parser().parse_args(argv)

    if args.sample_config:
        ConfigLoader.create_sample_config()
        print("Sample config.yaml created. Edit it, then run: python -m product_scraper.main <query>")
        return 0

    load_configuration(args.config)
    setup_logging(config.log_level, config.log_file)
    logger.debug(str(config))

    if not validate_dependencies():
        return 1

    if args.serve:
        serve()
        return 0

    query = " ".join(args.query)
    if not query.strip():
        print("Error: a search query is required, e.g. python -m product_scraper.main iphone 15 pro",
              file=sys.stderr)
        return 2

    try:
        return run_query(query, args.output)
    except KeyboardInterrupt:
        logger.warning("Scrape interrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
