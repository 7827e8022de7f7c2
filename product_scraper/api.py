"""
HTTP front door for the product scraper.
Exposes a health route and a single scrape route returning the aggregate payload as JSON.
"""

import logging
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from product_scraper.errors import InvalidQueryError
from product_scraper.models import AggregateResult
from product_scraper.orchestrator import scrape_products

logger = logging.getLogger(__name__)

EXAMPLE_USAGE = '/api/scrape?query=iphone%2015%20pro'

ScrapeFunc = Callable[[str], Awaitable[Optional[AggregateResult]]]


def _missing_query() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={'error': 'Missing query parameter', 'example': EXAMPLE_USAGE},
    )


def create_app(scrape: ScrapeFunc = scrape_products) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        scrape: Coroutine function mapping a query to an AggregateResult
    """
    app = FastAPI(title="Product Scraper")
    app.add_middleware(CORSMiddleware, allow_origins=['*'], allow_methods=['*'], allow_headers=['*'])

    @app.get('/')
    async def index() -> JSONResponse:
        return JSONResponse(content={
            'status': 'ok',
            'message': 'Product scraper API is running',
            'endpoints': {'scrape': '/api/scrape?query=product+name'},
        })

    @app.get('/api/scrape')
    async def scrape_route(query: Optional[str] = Query(default=None)) -> JSONResponse:
        if query is None or not query.strip():
            return _missing_query()

        logger.info(f"Received scraping request for: {query}")
        try:
            result = await scrape(query)
        except InvalidQueryError:
            return _missing_query()
        except Exception as e:
            logger.error(f"API Error: {e}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={'error': 'An error occurred while scraping', 'message': str(e)},
            )

        if result is None:
            return JSONResponse(status_code=404, content={'error': 'No results found'})
        return JSONResponse(content=result.to_payload())

    return app


app = create_app()
