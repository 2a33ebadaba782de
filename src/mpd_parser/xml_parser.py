"""XML parsing utilities for DASH manifests.

This module turns raw MPD text into a generic attribute/children tree:
- Namespaces are stripped from element and attribute names
- Attribute values are coerced to int, float or bool where they look like one
- Children are grouped per tag as ordered lists, so downstream code never
  has to distinguish "one child" from "many children"
"""

import re
import xml.etree.ElementTree as ET
from typing import Any, Iterator

from ..shared.exceptions import ManifestParseError

NUMERIC_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")

# Key used for leaf text in the collapsed dictionary view
TEXT_KEY = "_text"


class RawNode:
    """Generic element of a parsed manifest.

    Attributes:
        tag: Local element name (namespace removed)
        attributes: Attribute name to coerced scalar
        children: Child tag to the ordered list of child nodes
        text: Trimmed text of a leaf element, None otherwise
    """

    __slots__ = ("tag", "attributes", "children", "text")

    def __init__(
        self,
        tag: str,
        attributes: dict[str, Any] | None = None,
        children: dict[str, list["RawNode"]] | None = None,
        text: str | None = None,
    ) -> None:
        self.tag = tag
        self.attributes = attributes or {}
        self.children = children or {}
        self.text = text

    def get(self, name: str, default: Any = None) -> Any:
        """Get an attribute value."""
        return self.attributes.get(name, default)

    def has(self, name: str) -> bool:
        """Check whether an attribute is present."""
        return name in self.attributes

    def all(self, tag: str) -> list["RawNode"]:
        """Get all children with a tag in document order (possibly empty)."""
        return self.children.get(tag, [])

    def first(self, tag: str) -> "RawNode | None":
        """Get the first child with a tag, if any."""
        nodes = self.children.get(tag)
        return nodes[0] if nodes else None

    def iter(self, tag: str) -> Iterator["RawNode"]:
        """Iterate over all descendants with a tag, depth first."""
        for nodes in self.children.values():
            for node in nodes:
                if node.tag == tag:
                    yield node
                yield from node.iter(tag)

    def to_dict(self) -> dict[str, Any]:
        """Render the collapsed tree view.

        A tag seen once is stored as a single value, a repeated tag as a list
        in document order. Leaf text is stored under ``_text``.
        """
        result: dict[str, Any] = dict(self.attributes)
        for tag, nodes in self.children.items():
            rendered = [node.to_dict() for node in nodes]
            result[tag] = rendered[0] if len(rendered) == 1 else rendered
        if self.text is not None:
            result[TEXT_KEY] = self.text
        return result

    def __repr__(self) -> str:
        return f"RawNode({self.tag!r}, {self.attributes!r})"


def parse_mpd_xml(xml_content: str | bytes) -> RawNode:
    """Parse MPD XML into a RawNode tree.

    Args:
        xml_content: Raw XML document

    Returns:
        Root node (tag ``MPD``)

    Raises:
        ManifestParseError: If the document is empty, malformed, or not an MPD

    Example:
        >>> root = parse_mpd_xml('<MPD type="static"><Period id="1"/></MPD>')
        >>> root.first("Period").get("id")
        1
    """
    if xml_content is None or not str(xml_content).strip():
        raise ManifestParseError("Empty manifest document", {"length": 0})

    try:
        element = ET.fromstring(xml_content)
    except ET.ParseError as e:
        raise ManifestParseError(
            f"Invalid XML format: {e}",
            {"parse_error": str(e), "position": getattr(e, "position", None)},
        )

    root = _convert_element(element)
    if root.tag != "MPD":
        raise ManifestParseError(
            f"Invalid root element: expected 'MPD', got '{root.tag}'",
            {"actual_root": root.tag},
        )

    return root


def coerce_value(value: str) -> Any:
    """Coerce an attribute string to int, float, bool or str.

    Args:
        value: Raw attribute value

    Returns:
        Coerced value
    """
    if NUMERIC_PATTERN.match(value):
        return float(value) if "." in value else int(value)
    if value == "true":
        return True
    if value == "false":
        return False
    return value


def _local_name(name: str) -> str:
    """Strip '{uri}' and 'prefix:' qualifiers from a name."""
    if "}" in name:
        name = name.split("}")[-1]
    return name.split(":")[-1]


def _convert_element(element: ET.Element) -> RawNode:
    """Recursively convert an ElementTree element."""
    attributes = {_local_name(k): coerce_value(v) for k, v in element.attrib.items()}

    children: dict[str, list[RawNode]] = {}
    for child in element:
        if not isinstance(child.tag, str):
            # Comments and processing instructions
            continue
        node = _convert_element(child)
        children.setdefault(node.tag, []).append(node)

    text = None
    if not children and element.text is not None and element.text.strip():
        text = element.text.strip()

    return RawNode(_local_name(element.tag), attributes, children, text)
