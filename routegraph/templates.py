"""
routegraph.templates
--------------------
Markdown rendering of AIT tech stacks with `{{placeholder}}` templates.

A document template (`<name>.md`) receives `title`, `count` and `aits`;
each AIT is rendered with the section template (`techstack_ait.md`).
"""
from __future__ import annotations

import logging
from pathlib import Path
import re
from typing import Any, Dict, Iterable, List, Mapping

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).with_name("templates")

# ────────────────────────── placeholder regex ───────────────────────────
_PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-zA-Z0-9_]+?)\s*\}\}")


def extract_placeholders(text: str) -> List[str]:
    """Sorted list of unique placeholder names (`{{name}}`) found in *text*."""
    return sorted(set(_PLACEHOLDER_RE.findall(text)))


def fill(template: str, values: Mapping[str, Any]) -> str:
    """Replace every `{{name}}`; names without a value become empty strings."""
    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if name not in values:
            log.debug("No value for placeholder '%s'", name)
            return ""
        return str(values[name])
    return _PLACEHOLDER_RE.sub(_sub, template)


# ────────────────────────── AIT document helpers ────────────────────────
# category → path inside an AIT document
_CATEGORIES = {
    "languages": ("languagesFrameworks", "languages"),
    "frameworks": ("languagesFrameworks", "frameworks"),
    "databases": ("infrastructure", "databases"),
    "middlewares": ("infrastructure", "middlewares"),
    "operating_systems": ("infrastructure", "operatingSystems"),
    "libraries": ("libraries",),
}
SEARCHABLE_FIELDS = tuple(_CATEGORIES)


def _dig(doc: Mapping[str, Any], path: Iterable[str]) -> Any:
    node: Any = doc
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def _component(item: Any) -> str:
    if not isinstance(item, Mapping):
        return str(item)
    label = str(item.get("name") or "?")
    if item.get("version"):
        label += f" {item['version']}"
    if item.get("type"):
        label += f" ({item['type']})"
    return label


def component_names(doc: Mapping[str, Any]) -> Dict[str, List[str]]:
    """Per-category component labels of one AIT document."""
    out: Dict[str, List[str]] = {}
    for category, path in _CATEGORIES.items():
        items = _dig(doc, path) or []
        out[category] = [_component(item) for item in items]
    return out


def ait_id(doc: Mapping[str, Any]) -> str:
    return str(doc.get("ait") or doc.get("ait_id") or "?")


# ────────────────────────── renderer ────────────────────────────────────
class MarkdownRenderer:
    def __init__(
        self,
        template_name: str = "techstack_aits",
        section_name: str = "techstack_ait",
        template_dir: Path = TEMPLATE_DIR,
    ):
        self.template = (template_dir / f"{template_name}.md").read_text(encoding="utf-8")
        self.section = (template_dir / f"{section_name}.md").read_text(encoding="utf-8")

    def render(self, records: Iterable[Mapping[str, Any]], title: str) -> str:
        sections = []
        for doc in records:
            values: Dict[str, Any] = {"ait": ait_id(doc)}
            for category, names in component_names(doc).items():
                values[category] = ", ".join(names) or "—"
            sections.append(fill(self.section, values).rstrip())

        body = "\n\n".join(sections) if sections else "_No matching AITs found._"
        return fill(self.template, {
            "title": title,
            "count": len(sections),
            "aits": body,
        }).rstrip() + "\n"
