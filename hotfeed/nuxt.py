"""Locate and evaluate the ``window.__NUXT__`` hydration blob of a Nuxt page.

Extraction is a regular expression over the raw HTML, not a parse, so it
breaks whenever the site changes how it inlines the state. That failure is
an ExtractionError and is never retried.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict

from core.errors import ExtractionError, SandboxError
from hotfeed.jsliteral import run_script, to_plain

logger = logging.getLogger(__name__)

NUXT_TARGET = "window.__NUXT__"


def _assignment_pattern(target: str) -> re.Pattern:
    # <target> = (function(...){...}(...));
    return re.compile(
        re.escape(target)
        + r"\s*=\s*(\(\s*function\s*\(.*?\)\s*\{.*?\}\s*\(.*?\)\s*\))\s*;?",
        re.DOTALL,
    )


NUXT_RE = _assignment_pattern(NUXT_TARGET)


@dataclass
class SandboxGlobals:
    """Inert stand-ins for the browser globals the inline script may touch."""
    window: Dict[str, Any] = field(default_factory=dict)
    document: Any = None
    navigator: Any = None
    location: Any = None

    def bindings(self) -> Dict[str, Any]:
        return {
            "window": self.window,
            "globalThis": None,
            "document": self.document,
            "navigator": self.navigator,
            "location": self.location,
        }


def extract_nuxt_expression(html: str, target: str = NUXT_TARGET) -> str:
    """Return the self-invoking function expression assigned to ``target``."""
    pattern = NUXT_RE if target == NUXT_TARGET else _assignment_pattern(target)
    m = pattern.search(html or "")
    if not m:
        raise ExtractionError(f"no inline script assigning {target} found; page structure may have changed")
    logger.debug("Extracted %d chars of %s expression", len(m.group(1)), target)
    return m.group(1)


def evaluate_nuxt_expression(
    expr: str,
    *,
    sandbox: SandboxGlobals | None = None,
    timeout: float = 1.0,
    prop: str = "__NUXT__",
) -> Any:
    """Run ``window.<prop> = <expr>;`` in the restricted interpreter and return the assigned value."""
    sandbox = sandbox if sandbox is not None else SandboxGlobals()
    run_script(f"window.{prop} = {expr};", sandbox.bindings(), timeout=timeout)
    try:
        state = to_plain(sandbox.window.get(prop))
    except RecursionError as e:
        raise SandboxError("expression nested too deeply") from e
    if state is None:
        raise SandboxError(f"evaluation produced no window.{prop}")
    return state
