import pathlib

import pytest
import requests

FIX = pathlib.Path(__file__).parent.parent / "fixtures"


def make_response(status: int = 200, body: str = "", reason: str = "OK", charset: bool = True) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r.reason = reason
    r._content = body.encode("utf-8")
    r.headers["Content-Type"] = "text/html; charset=utf-8" if charset else "text/html"
    r.encoding = requests.utils.get_encoding_from_headers(r.headers)
    return r


class StubSession:
    """Stands in for requests.Session; replays queued responses, repeating the last one."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        r = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(r, Exception):
            raise r
        return r

    def close(self):
        pass


@pytest.fixture
def home_html() -> str:
    return (FIX / "html" / "huxiu_home.html").read_text(encoding="utf-8")


async def no_sleep(_seconds):
    return None
