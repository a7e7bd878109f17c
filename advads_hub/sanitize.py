"""Input sanitizers applied before anything is written to the content store.

These mirror the helpers a content platform normally provides:
- sanitize_key: machine keys (placement slugs)
- sanitize_text_field: single-line plain text (titles, names)
- sanitize_title: URL slugs derived from free text (group slugs)
- kses_post: post-content HTML reduced to an allowlist of tags and attributes
"""
from __future__ import annotations

import re
import unicodedata

from bs4 import BeautifulSoup
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction

_WS_RE = re.compile(r"[\r\n\t ]+")
_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.\-]*):")
# No parentheses or backslashes, so no url(), expression() or escapes.
_SAFE_STYLE_RE = re.compile(r"^[\w\s:;#%.,'\"!/+\-]*$")
_DATA_ATTR_RE = re.compile(r"^(data|aria)-[a-z0-9_\-]+$")

# Removed together with everything inside them.
_DROP_WITH_CONTENT = [
    "script", "style", "iframe", "object", "embed", "applet", "form", "frame", "frameset",
    "noscript", "template", "svg", "math", "meta", "link", "base",
]

_GLOBAL_ATTRS = frozenset({"class", "id", "style", "title", "lang", "dir", "role"})
_ALLOWED_TAGS: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "target", "rel", "name"}),
    "abbr": frozenset(),
    "b": frozenset(),
    "blockquote": frozenset({"cite"}),
    "br": frozenset(),
    "caption": frozenset(),
    "cite": frozenset(),
    "code": frozenset(),
    "col": frozenset({"span"}),
    "colgroup": frozenset({"span"}),
    "dd": frozenset(),
    "del": frozenset({"cite", "datetime"}),
    "div": frozenset({"align"}),
    "dl": frozenset(),
    "dt": frozenset(),
    "em": frozenset(),
    "figcaption": frozenset(),
    "figure": frozenset(),
    "h1": frozenset({"align"}),
    "h2": frozenset({"align"}),
    "h3": frozenset({"align"}),
    "h4": frozenset({"align"}),
    "h5": frozenset({"align"}),
    "h6": frozenset({"align"}),
    "hr": frozenset(),
    "i": frozenset(),
    "img": frozenset({"src", "alt", "width", "height", "loading", "align", "border"}),
    "ins": frozenset({"cite", "datetime"}),
    "li": frozenset({"value"}),
    "ol": frozenset({"start", "type", "reversed"}),
    "p": frozenset({"align"}),
    "pre": frozenset(),
    "q": frozenset({"cite"}),
    "s": frozenset(),
    "small": frozenset(),
    "span": frozenset(),
    "strong": frozenset(),
    "sub": frozenset(),
    "sup": frozenset(),
    "table": frozenset({"width", "border", "cellpadding", "cellspacing", "align"}),
    "tbody": frozenset(),
    "td": frozenset({"colspan", "rowspan", "width", "align", "valign"}),
    "tfoot": frozenset(),
    "th": frozenset({"colspan", "rowspan", "scope", "width", "align", "valign"}),
    "thead": frozenset(),
    "tr": frozenset({"align", "valign"}),
    "u": frozenset(),
    "ul": frozenset(),
}
_MARKUP_NODES = (Comment, CData, Declaration, Doctype, ProcessingInstruction)
_URL_ATTRS = frozenset({"href", "src", "cite"})
_ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto", "tel", "ftp", "ftps", "sms"})


def _parse(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, "html.parser")


def _strip_tags(text: str) -> str:
    if "<" not in text and "&" not in text:
        return text
    soup = _parse(text)
    for tag in soup.find_all(["script", "style"]):
        tag.extract()
    return soup.get_text()


def sanitize_key(value: object) -> str:
    """Lowercase and keep only ``[a-z0-9_-]``."""
    key = str(value or "").lower()
    return re.sub(r"[^a-z0-9_\-]", "", key)


def sanitize_text_field(value: object) -> str:
    text = _strip_tags(str(value or ""))
    text = _WS_RE.sub(" ", text)
    return text.strip()


def sanitize_title(value: object) -> str:
    text = _strip_tags(str(value or ""))
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return text.strip("-")


def _allowed_url(value: str) -> bool:
    compact = re.sub(r"[\x00-\x20]+", "", value).lower()
    m = _SCHEME_RE.match(compact)
    return m is None or m.group(1) in _ALLOWED_PROTOCOLS


def _keep_attr(tag_name: str, name: str, value: object) -> bool:
    if name not in _GLOBAL_ATTRS and name not in _ALLOWED_TAGS[tag_name] and not _DATA_ATTR_RE.match(name):
        return False
    if isinstance(value, list):
        value = " ".join(value)
    value = str(value)
    if name in _URL_ATTRS:
        return _allowed_url(value)
    if name == "style":
        return bool(_SAFE_STYLE_RE.match(value))
    return True


def kses_post(value: object) -> str:
    """Reduce post-content HTML to allowed tags, attributes and URL protocols.

    Scripting containers are removed with their content, other unknown tags
    are unwrapped so their text survives, and comments are dropped.
    """
    soup = _parse(str(value or ""))

    for node in soup.find_all(string=lambda s: isinstance(s, _MARKUP_NODES)):
        node.extract()
    for tag in soup.find_all(_DROP_WITH_CONTENT):
        tag.extract()

    for tag in soup.find_all(True):
        if tag.name not in _ALLOWED_TAGS:
            tag.unwrap()
            continue
        tag.attrs = {name: v for name, v in tag.attrs.items() if _keep_attr(tag.name, name, v)}

    return str(soup).strip()
