"""Hot articles RSS feed for m.huxiu.com."""

__version__ = "0.1.0"
