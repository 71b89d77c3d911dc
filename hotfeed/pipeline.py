"""fetch -> extract -> evaluate -> locate -> render, in that order.

Any failure aborts the run and propagates unchanged; there is no partial feed.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import requests

from core.config import Settings, settings as default_settings
from hotfeed.http_fetch import FetchConfig, fetch_html_with_retry
from hotfeed.nuxt import evaluate_nuxt_expression, extract_nuxt_expression
from hotfeed.rss import Channel, build_rss, locate_hot_articles

logger = logging.getLogger(__name__)


async def generate_rss(
    settings: Optional[Settings] = None,
    *,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> str:
    s = settings or default_settings
    html = await fetch_html_with_retry(s.home_url, FetchConfig.from_settings(s), session=session, sleep=sleep)
    logger.info("Fetched %s (%d chars)", s.home_url, len(html))

    expr = extract_nuxt_expression(html)
    state = evaluate_nuxt_expression(expr, timeout=s.sandbox_timeout)
    articles = locate_hot_articles(state)
    logger.info("Found %d hot articles", len(articles))

    return build_rss(
        articles,
        Channel(title=s.feed_title, link=s.channel_link, description=s.feed_description),
    )
