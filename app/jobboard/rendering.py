"""
Template rendering.

All templates matching the glob in the template directory are compiled up front,
so a broken template fails application startup. In development mode a watchdog
observer rebuilds the whole set whenever a template file is written; if the
rebuild fails the previous set keeps serving.
"""
from __future__ import annotations

import fnmatch
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import humanize
import markdown as markdown_lib
from flask import Response, current_app
from jinja2 import Environment, FileSystemLoader, Template, select_autoescape
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor
from markupsafe import Markup
from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

from app.jobboard.constants import CURRENCY_SYMBOLS, DEFAULT_CURRENCY_SYMBOL
from app.jobboard.models import utcnow
from app.jobboard.security import ensure_csrf_token

logger = logging.getLogger(__name__)

TEMPLATE_GLOB = "*.html"
SAFE_LINK_SCHEMES = ("http", "https", "mailto", "")


# ---------------------------------------------------------------------------
# Template helpers
# ---------------------------------------------------------------------------

_JS_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    '"': '\\"',
    "<": "\\u003C",
    ">": "\\u003E",
    "&": "\\u0026",
    "=": "\\u003D",
}


def js_escape_string(s: str) -> str:
    """Escape a string for use inside a JavaScript string literal."""
    out = []
    for ch in s:
        if ch in _JS_ESCAPES:
            out.append(_JS_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{ord(ch):04X}")
        else:
            out.append(ch)
    return "".join(out)


def _now_for(t: datetime) -> datetime:
    if t.tzinfo is not None:
        return datetime.now(timezone.utc)
    return utcnow()


def is_time_before_now(t: datetime) -> bool:
    return t < _now_for(t)


def is_time_after_now(t: datetime) -> bool:
    return t > _now_for(t)


def human_time(t: datetime) -> str:
    return humanize.naturaltime(_now_for(t) - t)


def human_number(n: int) -> str:
    return humanize.intcomma(n)


def last(items: list[int]) -> int:
    if not items:
        return -1
    return items[-1]


def truncate_name(s: str) -> str:
    return s.split(" ")[0]


def string_title(s: str) -> str:
    return s.title()


def replace_dash(s: str) -> str:
    return s.replace("-", " ")


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, DEFAULT_CURRENCY_SYMBOL)


def string_to_html(s: str) -> Markup:
    return Markup(s)


class _SafeLinkTreeprocessor(Treeprocessor):
    def run(self, root):
        for el in root.iter("a"):
            href = el.get("href", "")
            if urlsplit(href).scheme.lower() not in SAFE_LINK_SCHEMES:
                el.set("href", "")
            el.set("rel", "nofollow noreferrer")
            el.set("target", "_blank")


class SafeLinkExtension(Extension):
    """Drops unsafe link schemes and opens links in a new tab without referrer."""

    def extendMarkdown(self, md):
        md.treeprocessors.register(_SafeLinkTreeprocessor(md), "safe_links", 5)


def markdown_to_html(s: str) -> Markup:
    html = markdown_lib.markdown(s or "", extensions=["fenced_code", "tables", SafeLinkExtension()])
    return Markup(html)


TEMPLATE_GLOBALS: dict[str, Callable[..., Any]] = {
    "add": lambda a, b: a + b,
    "sub": lambda a, b: a - b,
    "mul": lambda a, b: a * b,
    "last": last,
    "jsescape": js_escape_string,
    "humantime": human_time,
    "humannumber": human_number,
    "is_time_before_now": is_time_before_now,
    "is_time_after_now": is_time_after_now,
    "truncate_name": truncate_name,
    "string_title": string_title,
    "replace_dash": replace_dash,
    "currency_symbol": currency_symbol,
    "markdown": markdown_to_html,
    "string_to_html": string_to_html,
}

# single-argument helpers double as filters: {{ job.salary_currency|currency_symbol }}
TEMPLATE_FILTERS = {
    name: fn
    for name, fn in TEMPLATE_GLOBALS.items()
    if name not in ("add", "sub", "mul")
}


# ---------------------------------------------------------------------------
# Template set and renderer
# ---------------------------------------------------------------------------


def load_template_set(directory: str, pattern: str = TEMPLATE_GLOB) -> dict[str, Template]:
    """Compile every template in directory matching pattern. Raises on the first broken template."""
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Template directory not found: {directory}")
    env = Environment(
        loader=FileSystemLoader(directory),
        autoescape=select_autoescape(["html"]),
        auto_reload=False,
    )
    env.globals.update(TEMPLATE_GLOBALS)
    env.filters.update(TEMPLATE_FILTERS)
    templates = {}
    for name in env.list_templates(filter_func=lambda n: fnmatch.fnmatch(n, pattern)):
        templates[name] = env.get_template(name)
    return templates


class _ReloadHandler(FileSystemEventHandler):
    def __init__(self, renderer: "TemplateRenderer"):
        self.renderer = renderer

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent) or not fnmatch.fnmatch(str(event.src_path), self.renderer.pattern):
            return
        logger.info("modified file %s, reloading templates", event.src_path)
        # an exception escaping here stops the observer thread for good
        try:
            self.renderer.reload()
        except Exception:
            logger.exception("template watcher failed handling %s", event.src_path)


class TemplateRenderer:
    def __init__(self, directory: str, *, watch: bool = False, pattern: str = TEMPLATE_GLOB):
        self.directory = directory
        self.pattern = pattern
        self._templates = load_template_set(directory, pattern)
        self._observer: Any = None
        self._reload_lock = threading.Lock()
        if watch:
            self.start_watching()

    @property
    def names(self) -> list[str]:
        return sorted(self._templates)

    @property
    def watching(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def reload(self) -> bool:
        """Rebuild the template set. On failure keep the current set and return False."""
        with self._reload_lock:
            try:
                templates = load_template_set(self.directory, self.pattern)
            except Exception:
                logger.exception("template reload failed, keeping previous templates")
                return False
            self._templates = templates
            return True

    def start_watching(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(_ReloadHandler(self), self.directory, recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("watching %s for template changes", self.directory)

    def close(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None

    def render_string(self, name: str, data: dict[str, Any] | None = None) -> str:
        try:
            template = self._templates[name]
        except KeyError:
            raise LookupError(f"no such template: {name}") from None
        return template.render(**(data or {}))

    def render(self, name: str, data: dict[str, Any] | None = None, status: int = 200) -> Response:
        body = self.render_string(name, data)
        return Response(body, status=status, mimetype="text/html")

    # Helpers also usable from views.
    js_escape_string = staticmethod(js_escape_string)
    string_to_html = staticmethod(string_to_html)
    markdown_to_html = staticmethod(markdown_to_html)


def render_page(name: str, status: int = 200, **data: Any) -> Response:
    """Render with the application's renderer. Use inside request handlers."""
    renderer: TemplateRenderer = current_app.extensions["template_renderer"]
    data.setdefault("csrf_token", ensure_csrf_token())
    return renderer.render(name, data, status)
