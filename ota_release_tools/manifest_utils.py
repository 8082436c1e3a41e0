import os
import re
from dataclasses import dataclass
from html import escape, unescape

from bs4 import BeautifulSoup

from .config import CHANNEL_META_NAME, ENABLED_META_NAME, RUNTIME_VERSION_META_NAME
from .exceptions import MissingFile, StructuralMismatch

"""Utilities for reading and patching AndroidManifest.xml.

Writes are textual so every byte outside the patched element survives;
structured reads go through BeautifulSoup.
"""

# Attribute runs may contain '>' or '/' inside quoted values.
_ATTRS = r'(?:"[^"]*"|\'[^\']*\'|[^\'">/]|/(?!>))*'

_TAG_RE = re.compile(
    r'<!--.*?-->|<(?P<close>/)?(?P<name>[A-Za-z_][\w:.-]*)' + _ATTRS + r'(?P<self>/)?>',
    re.S,
)
_COMMENT_RE = re.compile(r'<!--.*?-->', re.S)
_META_RE = re.compile(
    r'<meta-data\b(?P<attrs>' + _ATTRS + r')(?:/>|>(?P<inner>.*?)</meta-data\s*>)',
    re.S,
)
_APPLICATION_OPEN_RE = re.compile(r'<application\b' + _ATTRS + r'(?P<self>/)?>', re.S)
_APPLICATION_CLOSE_RE = re.compile(r'</application\s*>')
_NAME_ATTR_RE = re.compile(r'android:name\s*=\s*(?P<q>["\'])(?P<value>.*?)(?P=q)', re.S)
_VALUE_ATTR_RE = re.compile(r'(?P<head>android:value\s*=\s*(?P<q>["\']))(?P<value>.*?)(?P<tail>(?P=q))', re.S)


def _comment_spans(text: str) -> list[tuple[int, int]]:
    return [m.span() for m in _COMMENT_RE.finditer(text)]


def _in_spans(pos: int, spans) -> bool:
    return any(start <= pos < end for start, end in spans)


def _find_markers(text: str, name: str) -> list[re.Match]:
    comments = _comment_spans(text)
    found = []
    for m in _META_RE.finditer(text):
        if _in_spans(m.start(), comments):
            continue
        nm = _NAME_ATTR_RE.search(m.group("attrs"))
        if nm and unescape(nm.group("value")) == name:
            found.append(m)
    return found


def _depth_between(text: str, start: int, end: int) -> int:
    """Element nesting depth at `end`, counted from `start`."""
    depth = 0
    for m in _TAG_RE.finditer(text, start, end):
        if m.group("name") is None:
            continue
        if m.group("close"):
            depth -= 1
        elif not m.group("self"):
            depth += 1
    return depth


def _line_indent(text: str, pos: int) -> str:
    line_start = text.rfind("\n", 0, pos) + 1
    m = re.match(r'[ \t]*', text[line_start:pos])
    return m.group(0) if m else ""


def _newline_of(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def _meta_element(name: str, value: str) -> str:
    return f'<meta-data android:name="{name}" android:value="{escape(value, quote=True)}"/>'


def _remove_element(text: str, start: int, end: int) -> str:
    # Take the element's own line along with it when it stands alone.
    line_start = start
    while line_start > 0 and text[line_start - 1] in " \t":
        line_start -= 1
    if line_start > 0 and text[line_start - 1] == "\n":
        line_start -= 1
        if line_start > 0 and text[line_start - 1] == "\r":
            line_start -= 1
        return text[:line_start] + text[end:]
    return text[:start] + text[end:]


def _update_markers(text: str, markers: list[re.Match], value: str) -> str:
    first = markers[0]
    for dup in reversed(markers[1:]):
        text = _remove_element(text, dup.start(), dup.end())

    attrs_start, attrs_end = first.span("attrs")
    attrs = first.group("attrs")
    escaped = escape(value, quote=True)
    if _VALUE_ATTR_RE.search(attrs):
        new_attrs = _VALUE_ATTR_RE.sub(lambda m: f"{m.group('head')}{escaped}{m.group('tail')}", attrs, count=1)
    else:
        nm = _NAME_ATTR_RE.search(attrs)
        new_attrs = f'{attrs[:nm.end()]} android:value="{escaped}"{attrs[nm.end():]}'
    return text[:attrs_start] + new_attrs + text[attrs_end:]


def _insert_marker(text: str, name: str, value: str) -> str:
    comments = _comment_spans(text)
    app_open = next(
        (m for m in _APPLICATION_OPEN_RE.finditer(text) if not _in_spans(m.start(), comments)),
        None,
    )
    if app_open is None:
        raise StructuralMismatch("Could not find the <application> element in the manifest")
    if app_open.group("self"):
        raise StructuralMismatch("<application> is self-closing; there is nowhere to insert meta-data")
    app_close = _APPLICATION_CLOSE_RE.search(text, app_open.end())
    if app_close is None:
        raise StructuralMismatch("<application> is never closed")

    body_start, body_end = app_open.end(), app_close.start()
    anchor = None
    for m in _META_RE.finditer(text, body_start, body_end):
        if _in_spans(m.start(), comments):
            continue
        if _depth_between(text, body_start, m.start()) == 0:
            anchor = m

    nl = _newline_of(text)
    if anchor is not None:
        pos = anchor.end()
        indent = _line_indent(text, anchor.start())
    else:
        pos = body_start
        app_indent = _line_indent(text, app_open.start())
        child = re.match(r'\r?\n([ \t]*)\S', text[pos:])
        if child and len(child.group(1)) > len(app_indent):
            indent = child.group(1)
        else:
            # <application> sits one level deep, so its indent is one unit
            indent = app_indent * 2 if app_indent else "    "
    return text[:pos] + nl + indent + _meta_element(name, value) + text[pos:]


def upsert_meta_data(text: str, name: str, value: str) -> str:
    """Return `text` with exactly one <meta-data> named `name` carrying `value`.

    An existing element has only its android:value rewritten (duplicates are
    dropped). Otherwise a new element goes after the last <meta-data> child of
    <application>, or right after the <application> opening tag. Raises
    StructuralMismatch when the document has no usable <application>.
    """
    markers = _find_markers(text, name)
    if markers:
        return _update_markers(text, markers, value)
    return _insert_marker(text, name, value)


def find_meta_data_values(text: str, name: str) -> list[str]:
    """Every android:value carried by <meta-data android:name=name>."""
    soup = BeautifulSoup(text, "html.parser")
    return [tag.get("android:value", "") for tag in soup.find_all("meta-data", attrs={"android:name": name})]


def read_manifest(manifest_path: str) -> str:
    if not os.path.isfile(manifest_path):
        raise MissingFile(f"AndroidManifest.xml not found: {manifest_path}")
    with open(manifest_path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def inject_update_channel(manifest_path: str, channel: str, *, meta_name: str = CHANNEL_META_NAME) -> str:
    """Upsert the update channel marker in place; returns 'updated', 'inserted' or 'unchanged'."""
    print(f"Injecting update channel: {channel}")
    original = read_manifest(manifest_path)
    existed = bool(_find_markers(original, meta_name))
    patched = upsert_meta_data(original, meta_name, channel)
    _verify_channel(patched, meta_name, channel)

    if patched == original:
        action = "unchanged"
        print(f"✅ Channel already set to: {channel}")
    else:
        action = "updated" if existed else "inserted"
        with open(manifest_path, "w", encoding="utf-8", newline="") as f:
            f.write(patched)
        print(f"✅ Channel {action}: {channel}")
    print(f"   File: {manifest_path}")

    _verify_channel(read_manifest(manifest_path), meta_name, channel)
    print("✅ Verified: channel is set correctly")
    return action


def _verify_channel(text: str, meta_name: str, channel: str):
    values = find_meta_data_values(text, meta_name)
    if values != [channel]:
        raise StructuralMismatch(f"Verification failed: expected one {meta_name}={channel!r}, found {values!r}")


@dataclass
class UpdateSettings:
    channel: str | None = None
    enabled: str | None = None
    runtime_version: str | None = None


def read_update_settings(text: str) -> UpdateSettings:
    def first(name):
        values = find_meta_data_values(text, name)
        return values[0] if values else None

    return UpdateSettings(
        channel=first(CHANNEL_META_NAME),
        enabled=first(ENABLED_META_NAME),
        runtime_version=first(RUNTIME_VERSION_META_NAME),
    )
