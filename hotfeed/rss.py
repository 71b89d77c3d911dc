#!/usr/bin/env python3
"""Turn the recovered ``hotArticlesList`` into an RSS 2.0 document.

Items keep the list order; nothing is deduplicated or sorted. All text is
escaped by Jinja2's XML autoescaping at render time, including the
description, which is additionally wrapped in CDATA.
"""
from __future__ import annotations
import datetime, json, pathlib, re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from jsonschema import Draft202012Validator

from core.config import HOME_URL
from core.errors import StructureError
from hotfeed.jsliteral import format_number, truthy

HERE = pathlib.Path(__file__).resolve().parent
TPL = HERE / "templates"
SCHEMA = json.loads((HERE / "schemas" / "nuxt_state.schema.json").read_text(encoding="utf-8"))

ENCLOSURE_TYPE = "image/jpeg"
ORIGINAL_TAG = "原创"
VIDEO_TAG = "视频"
AUTHOR_PREFIX = "作者："
# characters XML 1.0 does not allow anywhere in a document
XML_INVALID_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")

@dataclass
class Channel:
    title: str = "虎嗅 - 热门文章"
    link: str = HOME_URL
    description: str = "来自 m.huxiu.com 首页的 hotArticlesList"

@dataclass
class FeedItem:
    title: str = ""
    link: str = ""
    guid: str = ""
    is_permalink: bool = False
    author: str = ""
    tags: List[str] = field(default_factory=list)
    enclosure_url: str = ""
    enclosure_type: str = ENCLOSURE_TYPE

def rfc2822(dt: datetime.datetime) -> str:
    # Thu, 21 Aug 2025 07:00:00 GMT
    return dt.astimezone(datetime.timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")

def text(value: Any) -> str:
    """String() of a recovered value, with None as the empty string."""
    if value is None:
        return ""
    if isinstance(value, (bool, int, float)):
        return format_number(value)
    if isinstance(value, str):
        return XML_INVALID_RE.sub("", value)
    # objects and arrays carry no usable text for a feed field
    return ""

def _json_path(path) -> str:
    return "$" + "".join([f"[{x!r}]" if isinstance(x, int) else f".{x}" for x in path])

def locate_hot_articles(state: Any) -> list:
    """Return ``state.data[0].hotArticlesList`` or raise StructureError."""
    errs = sorted(Draft202012Validator(SCHEMA).iter_errors(state), key=lambda e: len(e.absolute_path))
    if errs:
        where = "; ".join(f"{_json_path(e.absolute_path)}: {e.message[:200]}" for e in errs[:3])
        raise StructureError(f"data[0].hotArticlesList not found, page structure may have changed ({where})")
    return state["data"][0]["hotArticlesList"]

def build_item(record: Any) -> FeedItem:
    a = record if isinstance(record, dict) else {}
    link = text(a.get("url"))
    user_info = a.get("user_info")
    author = text(user_info.get("username")) if isinstance(user_info, dict) else ""

    tags = []
    if truthy(a.get("is_original")):
        tags.append(ORIGINAL_TAG)
    if truthy(a.get("is_video_article")):
        tags.append(VIDEO_TAG)
    if author:
        tags.append(f"{AUTHOR_PREFIX}{author}")

    pic_path = a.get("pic_path")
    return FeedItem(
        title=text(a.get("title")),
        link=link,
        guid=link or text(a.get("aid")),
        is_permalink=bool(link),
        author=author,
        tags=tags,
        enclosure_url=text(pic_path) if truthy(pic_path) else "",
    )

def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TPL)),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )

def build_rss(
    articles: list,
    channel: Optional[Channel] = None,
    *,
    now: Optional[datetime.datetime] = None,
) -> str:
    channel = channel or Channel()
    now = now or datetime.datetime.now(datetime.timezone.utc)
    items = [build_item(a) for a in articles]
    return _environment().get_template("rss.xml").render(
        channel=channel,
        last_build_date=rfc2822(now),
        items=items,
    )
