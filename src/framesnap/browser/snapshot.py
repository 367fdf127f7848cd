# Cross-frame accessibility snapshot builder
# Changes: Frame-aware capture; refs now come from the page and are namespaced per frame
#
# Converts each frame's accessibility tree into a semantic text outline with
# [ref=...] markers for LLM-based browser control. Nested iframes are spliced
# in under a "# iframe" header.
"""Accessibility tree to semantic text snapshot converter."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Frame, Page

from .refs import REF_ATTRIBUTE, FrameTable, qualify_ref, ref_selector

logger = logging.getLogger(__name__)

# Elements kept by the compact snapshot.
COMPACT_SELECTORS = [
    "a[href]",
    "button",
    "input",
    "select",
    "textarea",
    '[role="button"]',
    '[role="link"]',
    '[role="tab"]',
    '[role="menuitem"]',
    '[role="checkbox"]',
    '[role="radio"]',
]

# Runs inside one frame. Drops stamps left by earlier cycles, stamps every
# emitted element with a fresh "s<cycle>e<n>" reference and returns the tree
# as nested dicts. Invisible or zero-size iframes are left out.
CAPTURE_SCRIPT = r"""
({ cycle, attr, interactiveOnly, selectors }) => {
  for (const stale of document.querySelectorAll(`[${attr}]`))
    stale.removeAttribute(attr);

  let counter = 0;
  const compactSelector = selectors.join(",");
  const TRANSPARENT = new Set(["generic", "none", "presentation"]);
  const NAME_FROM_CONTENT = new Set([
    "button", "link", "heading", "option", "tab", "menuitem", "menuitemcheckbox",
    "menuitemradio", "treeitem", "cell", "columnheader", "rowheader", "checkbox",
    "radio", "switch", "tooltip",
  ]);
  const SKIP_TAGS = new Set(["script", "style", "noscript", "template", "head", "meta", "link"]);
  const TAG_ROLES = {
    article: "article", aside: "complementary", button: "button", dialog: "dialog",
    fieldset: "group", figure: "figure", footer: "contentinfo", form: "form",
    h1: "heading", h2: "heading", h3: "heading", h4: "heading", h5: "heading", h6: "heading",
    header: "banner", hr: "separator", iframe: "iframe", frame: "iframe", li: "listitem",
    main: "main", nav: "navigation", ol: "list", option: "option", p: "paragraph",
    progress: "progressbar", section: "region", summary: "button", table: "table",
    tbody: "rowgroup", td: "cell", textarea: "textbox", th: "columnheader",
    thead: "rowgroup", tr: "row", ul: "list",
  };

  const clean = (text) => (text || "").replace(/\s+/g, " ").trim();

  const inputRole = (el) => {
    const type = (el.getAttribute("type") || "text").toLowerCase();
    if (type === "checkbox") return "checkbox";
    if (type === "radio") return "radio";
    if (["button", "submit", "reset", "image"].includes(type)) return "button";
    if (type === "range") return "slider";
    if (type === "number") return "spinbutton";
    if (type === "search") return "searchbox";
    if (type === "hidden") return "none";
    if (el.hasAttribute("list")) return "combobox";
    return "textbox";
  };

  const roleOf = (el) => {
    const explicit = clean(el.getAttribute("role")).split(" ")[0];
    if (explicit) return explicit;
    const tag = el.tagName.toLowerCase();
    if (tag === "a" || tag === "area") return el.hasAttribute("href") ? "link" : "generic";
    if (tag === "input") return inputRole(el);
    if (tag === "select") return el.multiple || el.size > 1 ? "listbox" : "combobox";
    if (tag === "img") return el.getAttribute("alt") === "" ? "presentation" : "img";
    return TAG_ROLES[tag] || "generic";
  };

  const nameOf = (el, role) => {
    const label = clean(el.getAttribute("aria-label"));
    if (label) return label;
    const labelledBy = clean(el.getAttribute("aria-labelledby"));
    if (labelledBy) {
      const text = labelledBy.split(" ")
        .map((id) => document.getElementById(id))
        .filter(Boolean)
        .map((target) => clean(target.textContent))
        .join(" ");
      if (text) return text;
    }
    if (el.labels && el.labels.length)
      return clean(Array.from(el.labels).map((l) => l.textContent).join(" "));
    const tag = el.tagName.toLowerCase();
    if (tag === "img" || tag === "area")
      return clean(el.getAttribute("alt")) || clean(el.getAttribute("title"));
    if (tag === "input" && ["button", "submit", "reset"].includes((el.getAttribute("type") || "").toLowerCase()))
      return clean(el.value);
    if (NAME_FROM_CONTENT.has(role)) {
      const text = clean(el.innerText ?? el.textContent);
      if (text) return text;
    }
    return clean(el.getAttribute("title")) || clean(el.getAttribute("placeholder"));
  };

  const describe = (el, role, node) => {
    const aria = (key) => el.getAttribute(`aria-${key}`);
    if (role === "heading") {
      const level = Number(aria("level") || el.tagName.slice(1));
      if (Number.isFinite(level) && level > 0) node.level = level;
    }
    if (["checkbox", "radio", "switch"].includes(role) && "checked" in el) node.checked = el.checked;
    else if (aria("checked") !== null) node.checked = aria("checked") === "true";
    if (el.disabled || aria("disabled") === "true") node.disabled = true;
    if (aria("expanded") !== null) node.expanded = aria("expanded") === "true";
    if ((role === "option" && el.selected) || aria("selected") === "true") node.selected = true;
    if (aria("pressed") !== null) node.pressed = aria("pressed") === "true";
    if (el.required || aria("required") === "true") node.required = true;
    if (el.readOnly || aria("readonly") === "true") node.readonly = true;
    if (document.activeElement === el && el !== document.body) node.focused = true;
    if (el.tagName.toLowerCase() === "input" && el.type === "password") {
      node.type = "password";
    } else if (["textbox", "searchbox", "combobox", "spinbutton", "slider"].includes(role)
        && typeof el.value === "string" && el.value) {
      node.value = el.value;
    }
  };

  const visitChildren = (el, out) => {
    for (const child of el.childNodes) {
      if (child.nodeType === Node.TEXT_NODE) {
        const text = clean(child.textContent);
        if (text && !interactiveOnly) out.push({ role: "text", name: text, children: [] });
      } else if (child.nodeType === Node.ELEMENT_NODE) {
        visit(child, out);
      }
    }
  };

  const visit = (el, out) => {
    const tag = el.tagName.toLowerCase();
    if (SKIP_TAGS.has(tag)) return;
    const style = window.getComputedStyle(el);
    if (style.display === "none" || el.hidden || el.getAttribute("aria-hidden") === "true") return;

    const role = roleOf(el);
    const isFrame = tag === "iframe" || tag === "frame";
    if (isFrame) {
      const rect = el.getBoundingClientRect();
      if (style.visibility === "hidden" || rect.width <= 0 || rect.height <= 0) return;
    }

    const included = isFrame || (interactiveOnly
      ? el.matches(compactSelector)
      : !TRANSPARENT.has(role) && style.visibility !== "hidden");
    if (!included) {
      visitChildren(el, out);
      return;
    }

    const ref = `s${cycle}e${++counter}`;
    el.setAttribute(attr, ref);
    const node = { role: isFrame ? "iframe" : role, name: nameOf(el, role), ref, children: [] };
    describe(el, role, node);
    if (isFrame) {
      node.src = el.getAttribute("src") || "";
      node.frameName = el.getAttribute("name") || "";
    } else if (!(NAME_FROM_CONTENT.has(role) && node.name)) {
      visitChildren(el, node.children);
    }
    out.push(node);
  };

  const children = [];
  const root = document.body || document.documentElement;
  if (root) visitChildren(root, children);
  return { role: "WebArea", name: document.title, children };
}
"""


@dataclass
class FrameCapture:
    """Result of capturing one frame.

    ``tree`` is set on success, ``error`` when the frame could not be
    captured. ``frame`` is the live handle (None if it never resolved).
    """

    frame: Any
    tree: AccessibilityNode | None = None
    error: str | None = None


@dataclass
class AccessibilityNode:
    """Represents a node in the accessibility tree.

    This is our internal representation, converted from the dicts the
    capture script returns. Iframe nodes get their captured child frame
    attached as ``frame``.
    """

    role: str
    name: str
    children: list[AccessibilityNode] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)
    ref: str | None = None
    frame: FrameCapture | None = None

    @classmethod
    def from_playwright_dict(cls, data: dict[str, Any]) -> AccessibilityNode:
        """Convert a captured accessibility tree dict to AccessibilityNode.

        The capture script returns nested dicts with keys like:
        - role: string
        - name: string
        - ref: frame-local reference (absent on text nodes)
        - children: list of child dicts
        - Various properties: level, focused, disabled, checked, etc.
        - src / frameName on iframe nodes
        """
        role = data.get("role", "")
        name = data.get("name", "")

        # Extract known properties
        properties: dict[str, Any] = {}
        property_keys = [
            "level", "focused", "disabled", "checked", "expanded",
            "selected", "pressed", "required", "readonly", "hidden",
            "type", "value", "valuetext", "description", "src", "frameName"
        ]
        for key in property_keys:
            if key in data:
                properties[key] = data[key]

        # Convert children recursively
        children = []
        for child_data in data.get("children", []):
            children.append(cls.from_playwright_dict(child_data))

        return cls(
            role=role,
            name=name,
            children=children,
            properties=properties,
            ref=data.get("ref") or None,
        )

    def iframes(self) -> list[AccessibilityNode]:
        """Iframe nodes below this node, in document order."""
        found = []
        for child in self.children:
            if child.role == "iframe":
                found.append(child)
            else:
                found.extend(child.iframes())
        return found


def frame_header(node: AccessibilityNode) -> str:
    """The "# iframe src=... name=..." line shown above a nested frame."""
    args = []
    src = node.properties.get("src")
    if src:
        args.append(f"src={src}")
    frame_name = node.properties.get("frameName")
    if frame_name:
        args.append(f"name={frame_name}")
    return " ".join(["# iframe", *args])


def unavailable_marker(reason: str | None) -> str:
    return f"- <iframe snapshot unavailable: {reason or 'unknown error'}>"


def truncate_snapshot(text: str, max_length: int) -> str:
    """Cut ``text`` to ``max_length`` characters, saying so at the end."""
    if max_length <= 0 or len(text) <= max_length:
        return text
    return f"{text[:max_length]}\n... [snapshot truncated at {max_length} of {len(text)} characters]"


class SnapshotGenerator:
    """Generates semantic text snapshots from captured frame trees.

    Converts the accessibility tree into a text format that an LLM can
    understand and use to control the browser. Elements carry [ref=...]
    markers; refs of nested frames are prefixed with ``f<N>``.

    Rendering walks frames depth-first and left to right, adding each one
    to the frame table as it is reached. That walk order, not the order
    in which captures finished, decides frame indices.
    """

    # Roles to skip entirely (not meaningful for LLM)
    SKIP_ROLES = {
        "none", "presentation", "generic"
    }

    # Maximum length for element names before truncation
    MAX_NAME_LENGTH = 100

    def __init__(self) -> None:
        self._table: FrameTable = FrameTable()
        self._lines: list[str] = []

    def generate(
        self,
        capture: FrameCapture,
        table: FrameTable,
        title: str | None = None,
        url: str | None = None
    ) -> str:
        """Generate a full outline of ``capture`` and its nested frames.

        Args:
            capture: The root frame's capture
            table: Frame table of the current cycle; frames are appended to it
            title: Optional page title
            url: Optional page URL

        Returns:
            Snapshot text
        """
        self._table = table
        self._lines = []

        # Add page header
        if title:
            self._lines.append(f"Page: {title}")
        if url:
            self._lines.append(f"URL: {url}")
        if title or url:
            self._lines.append("")

        self._process_frame(capture, indent=0)

        return "\n".join(self._lines)

    def generate_compact(self, capture: FrameCapture, table: FrameTable) -> tuple[str, int]:
        """Generate a flat list of interactive elements, one section per frame.

        Returns:
            Tuple of (snapshot_text, element count in the root frame)
        """
        self._table = table
        self._lines = []
        root_count = self._process_compact_frame(capture, header=None)
        return "\n".join(self._lines), root_count

    def _process_frame(self, capture: FrameCapture, indent: int) -> None:
        index = self._table.add(capture.frame)
        if capture.tree is None:
            self._lines.append("  " * indent + unavailable_marker(capture.error))
            return
        self._process_node(capture.tree, indent, index)

    def _process_node(self, node: AccessibilityNode, indent: int, frame_index: int) -> None:
        """Recursively process a node and its children."""
        # Skip hidden elements
        if node.properties.get("hidden"):
            return

        # Skip meaningless roles
        if node.role.lower() in self.SKIP_ROLES:
            # Still process children
            for child in node.children:
                self._process_node(child, indent, frame_index)
            return

        # Handle the WebArea (root) specially - just process children
        if node.role == "WebArea":
            for child in node.children:
                self._process_node(child, indent, frame_index)
            return

        prefix = "  " * indent + "- "

        if node.role == "text":
            self._lines.append(f"{prefix}text: {self._truncate_name(node.name)}")
            return

        line = prefix + " ".join(self._describe(node, frame_index))

        # A lone text child reads better inline: "- paragraph [ref=s1e4]: Hello"
        children = node.children
        if not node.name and len(children) == 1 and children[0].role == "text":
            line += f": {self._truncate_name(children[0].name)}"
            children = []
        self._lines.append(line)

        if node.role == "iframe":
            self._lines.append("  " * (indent + 1) + frame_header(node))
            if node.frame is None:
                self._lines.append("  " * (indent + 2) + unavailable_marker("frame was not captured"))
            else:
                self._process_frame(node.frame, indent + 2)
            return

        # Process children with increased indent
        for child in children:
            self._process_node(child, indent + 1, frame_index)

    def _process_compact_frame(self, capture: FrameCapture, header: str | None) -> int:
        index = self._table.add(capture.frame)
        if header is not None:
            self._lines.append(header)
        if capture.tree is None:
            self._lines.append(unavailable_marker(capture.error))
            return 0

        count = 0
        nested: list[AccessibilityNode] = []
        for node in self._flatten(capture.tree):
            if node.role == "iframe":
                nested.append(node)
                continue
            self._lines.append("- " + " ".join(self._describe(node, index)))
            count += 1

        for node in nested:
            if node.frame is None:
                self._lines.append(frame_header(node))
                self._lines.append(unavailable_marker("frame was not captured"))
            else:
                self._process_compact_frame(node.frame, frame_header(node))
        return count

    def _flatten(self, node: AccessibilityNode) -> list[AccessibilityNode]:
        found = []
        for child in node.children:
            if child.ref and child.role.lower() not in self.SKIP_ROLES:
                found.append(child)
            if child.role != "iframe":
                found.extend(self._flatten(child))
        return found

    def _describe(self, node: AccessibilityNode, frame_index: int) -> list[str]:
        line_parts = [node.role]

        # Add name (truncated if needed)
        if node.name:
            name = self._truncate_name(node.name)
            line_parts.append(f'"{name}"')

        if node.ref:
            line_parts.append(f"[ref={qualify_ref(node.ref, frame_index)}]")

        # Add relevant properties as attributes
        line_parts.extend(self._format_properties(node))
        return line_parts

    def _truncate_name(self, name: str) -> str:
        """Truncate long names with ellipsis."""
        if len(name) > self.MAX_NAME_LENGTH:
            return name[:self.MAX_NAME_LENGTH - 3] + "..."
        return name

    def _format_properties(self, node: AccessibilityNode) -> list[str]:
        """Format node properties as attribute strings."""
        attrs = []
        props = node.properties

        # Level for headings
        if "level" in props:
            attrs.append(f"[level={props['level']}]")

        # Boolean states
        if props.get("focused"):
            attrs.append("[focused]")
        if props.get("disabled"):
            attrs.append("[disabled]")
        if props.get("checked"):
            attrs.append("[checked]")
        if props.get("expanded") is not None:
            attrs.append(f"[expanded={str(props['expanded']).lower()}]")
        if props.get("selected"):
            attrs.append("[selected]")
        if props.get("pressed"):
            attrs.append("[pressed]")
        if props.get("required"):
            attrs.append("[required]")
        if props.get("readonly"):
            attrs.append("[readonly]")

        # Type (e.g., password)
        if "type" in props:
            attrs.append(f"[type={props['type']}]")
        if props.get("value"):
            attrs.append(f'[value="{self._truncate_name(str(props["value"]))}"]')

        return attrs


class SnapshotBuilder:
    """Captures every frame of a page and renders one snapshot per cycle.

    Capture happens in two steps. First the whole frame tree is captured,
    sibling frames concurrently. Then the tree is rendered in one
    synchronous depth-first pass that fills the frame table. A frame that
    fails to capture becomes an inline marker; only a failure of the main
    frame fails the snapshot.
    """

    def __init__(self, table: FrameTable | None = None) -> None:
        self.table = table if table is not None else FrameTable()
        self._generator = SnapshotGenerator()

    async def capture_full(self, page: Page) -> str:
        """Outline of the whole page, nested frames included."""
        cycle = self.table.begin_cycle()
        capture = await self._capture_frame(page.main_frame, cycle, interactive_only=False)
        return self._generator.generate(capture, self.table).strip()

    async def capture_compact(self, page: Page) -> str:
        """Interactive elements only, grouped per frame."""
        cycle = self.table.begin_cycle()
        try:
            capture = await self._capture_frame(page.main_frame, cycle, interactive_only=True)
        except Exception as e:
            logger.warning("Compact snapshot failed: %s", e)
            return "\n".join([
                f"page: {await page.title()}",
                f"url: {page.url}",
                "error: Could not create interactive elements snapshot",
            ])

        body, count = self._generator.generate_compact(capture, self.table)
        header = [
            f"page: {await page.title()}",
            f"url: {page.url}",
            f"interactive_elements: {count}",
            f"frames: {len(self.table) - 1}",
            "",
            "# Interactive Elements:",
        ]
        return "\n".join(header) + "\n" + body

    async def _capture_frame(self, frame: Frame, cycle: int, interactive_only: bool) -> FrameCapture:
        data = await frame.evaluate(
            CAPTURE_SCRIPT,
            {
                "attr": REF_ATTRIBUTE,
                "cycle": cycle,
                "interactiveOnly": interactive_only,
                "selectors": COMPACT_SELECTORS,
            },
        )
        tree = AccessibilityNode.from_playwright_dict(data if isinstance(data, dict) else {})

        iframes = tree.iframes()
        if iframes:
            children = await asyncio.gather(
                *(self._capture_child(frame, node, cycle, interactive_only) for node in iframes)
            )
            for node, child in zip(iframes, children):
                node.frame = child
        return FrameCapture(frame=frame, tree=tree)

    async def _capture_child(
        self,
        parent: Frame,
        node: AccessibilityNode,
        cycle: int,
        interactive_only: bool,
    ) -> FrameCapture:
        child: Frame | None = None
        try:
            handle = await parent.query_selector(ref_selector(node.ref or ""))
            if handle is not None:
                child = await handle.content_frame()
            if child is None:
                return FrameCapture(frame=None, error="frame is detached")
            return await self._capture_frame(child, cycle, interactive_only)
        except Exception as e:
            # Cross-origin, detached mid-capture, navigated away: all contained here.
            logger.debug("Could not capture iframe %s: %s", node.ref, e)
            return FrameCapture(frame=child, error=str(e).splitlines()[0] if str(e) else type(e).__name__)


__all__ = [
    "COMPACT_SELECTORS",
    "CAPTURE_SCRIPT",
    "FrameCapture",
    "AccessibilityNode",
    "SnapshotGenerator",
    "SnapshotBuilder",
    "frame_header",
    "truncate_snapshot",
]
