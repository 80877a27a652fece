"""Motivational quote client (quotable-style API)."""

import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.core.config import constants, settings
from src.core.errors import TransportError


logger = logging.getLogger(__name__)


class Quote(BaseModel):
    """Quote returned by ``GET /random``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", alias="_id")
    content: str
    author: str
    tags: list[str] = Field(default_factory=list)
    author_slug: str = Field(default="", alias="authorSlug")
    length: int = 0


async def fetch_quote(
    *,
    tags: str | None = constants.QUOTE_TAGS,
    max_length: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> Quote:
    """Fetch one random quote, optionally filtered by tags or maximum length.

    Raises:
        TransportError: If the API is unreachable, errors, or returns an unexpected body
    """
    params: dict[str, str | int] = {}
    if tags:
        params["tags"] = tags
    if max_length is not None:
        params["maxLength"] = max_length

    url = f"{settings.quote_api_url.rstrip('/')}/random"
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as owned_client:
                response = await owned_client.get(url, params=params)
        else:
            response = await client.get(url, params=params)
        response.raise_for_status()
        quote = Quote.model_validate(response.json())
    except httpx.HTTPError as e:
        logger.error("quote_fetch_failed", extra={"error": str(e)})
        msg = f"Failed to fetch quote: {e}"
        raise TransportError(msg) from e
    except (ValueError, ValidationError) as e:
        logger.error("quote_parse_failed", extra={"error": str(e)})
        msg = f"Quote API returned an unexpected body: {e}"
        raise TransportError(msg) from e

    logger.info("Quote fetched", extra={"author": quote.author})
    return quote
