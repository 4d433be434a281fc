"""
Settings document (web.config) for the public tree.

The document is handled as a generic element tree so unrelated sections,
comments, keys and namespace prefixes round-trip unchanged. Comments, PIs
and a DOCTYPE outside the root element are carried over verbatim.

The six hosting keys are upserted into <appSettings>: existing <add key=...>
entries get their value updated in place, missing ones are appended at the
end of the section.
"""

from __future__ import annotations

import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from kpack.core.writer import write_text_atomic
from kpack.errors import DocumentMergeError

__all__ = [
    "APP_SETTINGS_TAG",
    "SETTINGS_KEYS",
    "SettingsValues",
    "merge_settings",
    "find_settings_source",
    "write_settings_document",
]

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'
ROOT_TAG = "configuration"
APP_SETTINGS_TAG = "appSettings"
ENTRY_TAG = "add"

_BOM = "\ufeff"
_XML_NS = "http://www.w3.org/XML/1998/namespace"
_DECL_RE = re.compile(r"\A\s*<\?xml\b.*?\?>", re.DOTALL)
_START_TAG_RE = re.compile(r"<[^\s/>!?]+(?:\s+[^\s=/>]+\s*=\s*(?:\"[^\"]*\"|'[^']*'))*\s*/?>")
_ATTR_NAME_RE = re.compile(r"([^\s=/>]+)\s*=\s*(?:\"[^\"]*\"|'[^']*')")

SETTINGS_KEYS: Tuple[str, ...] = (
    "kpm-package-path",
    "bootstrapper-version",
    "kre-package-path",
    "kre-version",
    "kre-clr",
    "kre-app-base",
)


@dataclass(frozen=True)
class SettingsValues:
    package_path: str
    app_base: str
    bootstrapper_version: str = ""
    runtime_version: str = ""
    runtime_flavor: str = ""

    @classmethod
    def for_layout(
        cls,
        out_dir: Path,
        public_out: str,
        project_name: str,
        packages_name: str = "packages",
        *,
        runtime_version: str = "",
        runtime_flavor: str = "",
    ) -> "SettingsValues":
        """Paths are relative to the public directory, in host separator convention."""
        public_dir = os.path.join(str(out_dir), public_out)
        approot = os.path.join(str(out_dir), "approot")
        return cls(
            package_path=os.path.relpath(os.path.join(approot, packages_name), public_dir),
            app_base=os.path.relpath(os.path.join(approot, "src", project_name), public_dir),
            runtime_version=runtime_version,
            runtime_flavor=runtime_flavor,
        )

    def items(self) -> List[Tuple[str, str]]:
        return list(
            zip(
                SETTINGS_KEYS,
                (
                    self.package_path,
                    self.bootstrapper_version,
                    self.package_path,
                    self.runtime_version,
                    self.runtime_flavor,
                    self.app_base,
                ),
            )
        )


# ──────────────────────────────────────────────────────────────────────────────
# Tree edit
# ──────────────────────────────────────────────────────────────────────────────
class _SettingsTreeBuilder:
    """
    TreeBuilder target that also records the xmlns declarations each element
    makes, so prefixes can be written back as they were declared.
    """

    def __init__(self) -> None:
        self._tb = ET.TreeBuilder(insert_comments=True, insert_pis=True)
        self._pending: List[Tuple[str, str]] = []
        self.declared: Dict[int, List[Tuple[str, str]]] = {}

    def start_ns(self, prefix: str, uri: str) -> None:
        self._pending.append((prefix, uri))

    def start(self, tag, attrib):
        elem = self._tb.start(tag, attrib)
        if self._pending:
            self.declared[id(elem)] = self._pending
            self._pending = []
        return elem

    def end(self, tag):
        return self._tb.end(tag)

    def data(self, data):
        self._tb.data(data)

    def comment(self, text):
        return self._tb.comment(text)

    def pi(self, target, text=None):
        return self._tb.pi(target, text)

    def close(self):
        return self._tb.close()


def _parse(text: str, source: Optional[str]) -> Tuple[ET.Element, Dict[int, List[Tuple[str, str]]]]:
    builder = _SettingsTreeBuilder()
    parser = ET.XMLParser(target=builder)
    try:
        parser.feed(text)
        root = parser.close()
    except ET.ParseError as e:
        raise DocumentMergeError(f"Settings document is not well-formed XML: {e}", path=source) from e
    return root, builder.declared


def _split_document(text: str) -> Tuple[str, List[str], str]:
    """
    Return (prolog, root attribute names in source order, epilog).

    Prolog and epilog are the comments, processing instructions and DOCTYPE
    around the root element, verbatim, without the XML declaration.
    """
    text = text.lstrip(_BOM)
    m = _DECL_RE.match(text)
    i = m.end() if m else 0
    begin = i
    while True:
        while i < len(text) and text[i].isspace():
            i += 1
        if text.startswith("<!--", i):
            close = text.find("-->", i)
            nxt = close + 3
        elif text.startswith("<?", i):
            close = text.find("?>", i)
            nxt = close + 2
        elif text.startswith("<!DOCTYPE", i):
            close = text.find(">", i)
            subset = text.find("[", i)
            if 0 <= subset < close:
                close = text.find(">", text.find("]", subset))
            nxt = close + 1
        else:
            break
        if close < 0:
            break
        i = nxt
    prolog = text[begin:i].strip()

    tag = _START_TAG_RE.match(text, i)
    order = _ATTR_NAME_RE.findall(tag.group(0)) if tag else []

    end = len(text)
    while True:
        tail = text[:end].rstrip()
        if tail.endswith("-->"):
            k = tail.rfind("<!--")
        elif tail.endswith("?>"):
            k = tail.rfind("<?")
        else:
            end = len(tail)
            break
        if k < 0:
            break
        end = k
    return prolog, order, text[end:].strip()


def _strip_layout(elem: ET.Element) -> None:
    """Drop whitespace-only text/tails; the tree is re-indented on output."""
    for node in elem.iter():
        if node.tag not in (ET.Comment, ET.ProcessingInstruction):
            if node.text is not None and not node.text.strip():
                node.text = None
        if node.tail is not None and not node.tail.strip():
            node.tail = None


def _namespace(root: ET.Element) -> str:
    tag = root.tag if isinstance(root.tag, str) else ""
    return tag[1 : tag.index("}")] if tag.startswith("{") else ""


def _prefixed(name: str, scope: Dict[str, str]) -> str:
    if not name.startswith("{"):
        return name
    uri, local = name[1:].split("}", 1)
    if uri == _XML_NS:
        return f"xml:{local}"
    prefix = scope.get(uri)
    if prefix is None:
        return name
    return f"{prefix}:{local}" if prefix else local


def _restore_prefixes(
    elem: ET.Element,
    declared: Dict[int, List[Tuple[str, str]]],
    scope: Optional[Dict[str, str]] = None,
    attr_scope: Optional[Dict[str, str]] = None,
) -> None:
    """
    Rewrite `{uri}local` names back to their declared `prefix:local` form and
    put the xmlns declarations back on the elements that made them.
    Unprefixed attributes never take the default namespace.
    """
    scope = dict(scope or {})
    attr_scope = dict(attr_scope or {})
    decls = declared.get(id(elem), [])
    for prefix, uri in decls:
        scope[uri] = prefix
        if prefix:
            attr_scope[uri] = prefix

    if isinstance(elem.tag, str):
        attrib = {(f"xmlns:{p}" if p else "xmlns"): u for p, u in decls}
        for k, v in elem.attrib.items():
            attrib[_prefixed(k, attr_scope)] = v
        elem.tag = _prefixed(elem.tag, scope)
        elem.attrib.clear()
        elem.attrib.update(attrib)

    for child in elem:
        _restore_prefixes(child, declared, scope, attr_scope)


def _order_attributes(elem: ET.Element, order: List[str]) -> None:
    if not order:
        return
    rank = {name: n for n, name in enumerate(order)}
    items = sorted(elem.attrib.items(), key=lambda kv: rank.get(kv[0], len(order)))
    elem.attrib.clear()
    elem.attrib.update(items)


def _upsert(section: ET.Element, entry_tag: str, key: str, value: str) -> None:
    for entry in section.iter(entry_tag):
        if entry.get("key") == key:
            entry.set("value", value)
            return
    ET.SubElement(section, entry_tag, {"key": key, "value": value})


def merge_settings(existing: Optional[str], values: SettingsValues, *, source: Optional[str] = None) -> str:
    """
    Return the merged settings document text (LF line endings, no trailing newline).

    `existing=None` synthesizes a minimal document with only the app settings.
    Namespace declarations and prefixes, root attribute order, and the
    comments/PIs/DOCTYPE around the root element are kept. New elements take
    the root element's namespace.
    """
    prolog, order, epilog = "", [], ""
    declared: Dict[int, List[Tuple[str, str]]] = {}
    if existing is None:
        root = ET.Element(ROOT_TAG)
    else:
        root, declared = _parse(existing, source)
        prolog, order, epilog = _split_document(existing)
        _strip_layout(root)

    ns = _namespace(root)
    qualify = (lambda tag: f"{{{ns}}}{tag}") if ns else (lambda tag: tag)

    section = root.find(qualify(APP_SETTINGS_TAG))
    if section is None:
        section = ET.SubElement(root, qualify(APP_SETTINGS_TAG))

    for key, value in values.items():
        _upsert(section, qualify(ENTRY_TAG), key, value)

    _restore_prefixes(root, declared)
    _order_attributes(root, order)
    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode")
    return "\n".join(part for part in (XML_DECLARATION, prolog, body, epilog) if part)


# ──────────────────────────────────────────────────────────────────────────────
# Files
# ──────────────────────────────────────────────────────────────────────────────
def find_settings_source(project_dir: Path, webroot: Tuple[str, ...], name: str = "web.config") -> Optional[Path]:
    """Existing settings document: the public root's copy first, then the project root's."""
    for cand in (project_dir.joinpath(*webroot, name), project_dir / name):
        if cand.is_file():
            return cand
    return None


def write_settings_document(dest: Path, values: SettingsValues, source: Optional[Path] = None) -> Path:
    existing = None
    if source is not None:
        try:
            existing = source.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as e:
            raise DocumentMergeError(f"Settings document is not UTF-8: {e}", path=str(source)) from e
    text = merge_settings(existing, values, source=str(source) if source else None)
    write_text_atomic(dest, text)
    return dest
