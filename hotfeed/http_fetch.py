#!/usr/bin/env python3
from __future__ import annotations
import asyncio, logging, math, random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import requests

from core.config import Settings
from core.errors import NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

@dataclass
class FetchConfig:
    timeout: float = 15.0
    ua: str = DEFAULT_UA
    max_attempts: int = 3
    base_delay_ms: float = 500
    max_delay_ms: float = 8000

    @classmethod
    def from_settings(cls, s: Settings) -> FetchConfig:
        return cls(
            timeout=s.fetch_timeout,
            max_attempts=s.fetch_retry_max,
            base_delay_ms=s.fetch_retry_base_delay_ms,
            max_delay_ms=s.fetch_retry_max_delay_ms,
        )

def backoff_delay_ms(
    attempt: int,
    base_delay_ms: float = 500,
    max_delay_ms: float = 8000,
    rand: Callable[[], float] = random.random,
) -> int:
    """Exponential backoff with +/-50% jitter, capped at max_delay_ms."""
    # 2.0 ** 1023 is the largest power that still fits a float
    exp = base_delay_ms * 2.0 ** min(max(attempt, 1) - 1, 1023)
    jitter = exp * (0.5 + rand())
    return int(math.floor(min(max(jitter, 0), max_delay_ms)))

async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    label: str = "operation",
    base_delay_ms: float = 500,
    max_delay_ms: float = 8000,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    attempts = max(1, int(max_attempts or 1))
    attempt = 1
    while True:
        try:
            return await fn()
        except retry_on as err:
            if attempt >= attempts:
                raise
            delay = backoff_delay_ms(attempt, base_delay_ms, max_delay_ms)
            try:
                logger.warning("%s failed (attempt %d/%d), retry in %dms: %s", label, attempt, attempts, delay, err)
            except Exception:
                # a failing log call must not change the retry decision
                pass
            await sleep(delay / 1000)
            attempt += 1

def build_session(cfg: FetchConfig) -> requests.Session:
    s = requests.Session()
    s.headers.update({
        "User-Agent": cfg.ua,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "zh-CN,zh;q=0.9",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    })
    return s

def fetch_html(session: requests.Session, url: str, cfg: FetchConfig) -> str:
    try:
        r = session.get(url, timeout=cfg.timeout)
    except requests.RequestException as e:
        raise NetworkError(f"GET {url} failed: {e}") from e
    if not (r.status_code >= 200 and r.status_code < 300):
        raise NetworkError(
            f"GET {url} failed: {r.status_code} {r.reason}",
            status_code=r.status_code,
            reason=r.reason,
        )
    # requests assumes latin-1 for text/* without a charset
    if not r.encoding or r.encoding.lower() == "iso-8859-1":
        r.encoding = "utf-8"
    logger.debug("Fetched %d bytes from %s", len(r.content or b""), url)
    return r.text or ""

async def fetch_html_with_retry(
    url: str,
    cfg: FetchConfig,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> str:
    own_session = session is None
    s = build_session(cfg) if own_session else session
    try:
        return await with_retry(
            lambda: asyncio.to_thread(fetch_html, s, url, cfg),
            max_attempts=cfg.max_attempts,
            label=f"fetch {url}",
            base_delay_ms=cfg.base_delay_ms,
            max_delay_ms=cfg.max_delay_ms,
            retry_on=(NetworkError,),
            sleep=sleep,
        )
    finally:
        if own_session:
            s.close()
