"""Minimal element tree used as the rendering surface.

A stream session writes into a container ``Element``: prose blocks,
skeleton placeholders, live widgets, fallbacks and the trailing cursor
are all children of it. The tree serializes to HTML with ``to_html()``
and is projected onto the terminal by ``livellm.display``.

Each element has either raw ``inner_html`` (trusted markup produced by
the markdown renderer or a widget) or ``text`` (escaped on output) plus
any number of child elements appended after it.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import Any

# Elements that never take a closing tag
_VOID_TAGS = frozenset({"br", "hr", "img", "input", "meta", "link"})


class NodeKind:
    """Values stored in ``Element.kind`` to tag the role of a node."""

    PLAIN = "plain"
    CONTAINER = "container"
    PROSE = "prose"
    SKELETON = "skeleton"
    COMPONENT = "component"
    FALLBACK = "fallback"
    CURSOR = "cursor"


@dataclass(eq=False)
class Element:
    """A node in the output tree."""

    tag: str = "div"
    attrs: dict[str, str] = field(default_factory=dict)
    classes: list[str] = field(default_factory=list)
    text: str = ""
    inner_html: str = ""
    children: list[Element] = field(default_factory=list)
    kind: str = NodeKind.PLAIN
    # Payload that is not serialized (markdown source, props, widget instance)
    data: dict[str, Any] = field(default_factory=dict)
    parent: Element | None = field(default=None, repr=False)

    # ── Tree mutation ─────────────────────────────────────────

    def append(self, child: Element) -> Element:
        """Append ``child`` as the last child, detaching it first."""
        child.remove()
        child.parent = self
        self.children.append(child)
        return child

    def insert_before(self, child: Element, reference: Element | None) -> Element:
        """Insert ``child`` before ``reference`` (or append when it is not a child)."""
        if reference is None or reference.parent is not self:
            return self.append(child)
        child.remove()
        index = self.children.index(reference)
        child.parent = self
        self.children.insert(index, child)
        return child

    def remove(self) -> None:
        """Detach this element from its parent. No-op when detached."""
        if self.parent is None:
            return
        siblings = self.parent.children
        for i, node in enumerate(siblings):
            if node is self:
                del siblings[i]
                break
        self.parent = None

    def replace_with(self, other: Element) -> Element:
        """Put ``other`` at this element's position and detach this one."""
        if self.parent is None:
            return other
        parent = self.parent
        other.remove()
        index = next(i for i, node in enumerate(parent.children) if node is self)
        parent.children[index] = other
        other.parent = parent
        self.parent = None
        return other

    def set_html(self, markup: str) -> None:
        """Replace the element's content with a markup fragment."""
        self.inner_html = markup
        self.text = ""

    # ── Queries ───────────────────────────────────────────────

    @property
    def is_attached(self) -> bool:
        return self.parent is not None

    def iter(self):
        """Depth-first iteration over this element and its descendants."""
        yield self
        for child in self.children:
            yield from child.iter()

    def find_all(self, kind: str) -> list[Element]:
        """All descendants (including self) with the given ``kind``."""
        return [node for node in self.iter() if node.kind == kind]

    def text_content(self) -> str:
        """Concatenated visible text, with markup tags stripped."""
        own = self.text or _strip_tags(self.inner_html)
        return own + "".join(child.text_content() for child in self.children)

    # ── Serialization ─────────────────────────────────────────

    def to_html(self) -> str:
        """Serialize this element and its children to HTML."""
        parts = [f"<{self.tag}"]
        if self.classes:
            parts.append(f' class="{html.escape(" ".join(self.classes))}"')
        for name, value in self.attrs.items():
            parts.append(f' {name}="{html.escape(str(value))}"')
        parts.append(">")
        if self.tag in _VOID_TAGS:
            return "".join(parts)
        if self.text:
            parts.append(html.escape(self.text, quote=False))
        else:
            parts.append(self.inner_html)
        for child in self.children:
            parts.append(child.to_html())
        parts.append(f"</{self.tag}>")
        return "".join(parts)

    def inner_to_html(self) -> str:
        """Serialize only the children (and own content), without the wrapper tag."""
        own = html.escape(self.text, quote=False) if self.text else self.inner_html
        return own + "".join(child.to_html() for child in self.children)


def create_container() -> Element:
    """Create an empty target container for a stream session."""
    return Element(tag="div", classes=["livellm-container"], kind=NodeKind.CONTAINER)


def _strip_tags(markup: str) -> str:
    if not markup:
        return ""
    out: list[str] = []
    in_tag = False
    for ch in markup:
        if ch == "<":
            in_tag = True
        elif ch == ">":
            in_tag = False
        elif not in_tag:
            out.append(ch)
    return html.unescape("".join(out))
