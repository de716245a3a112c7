"""Narrow accessor surface over POM and maven-metadata.xml documents.

Documents are parsed with ``xml.etree.ElementTree`` and namespaces are
stripped on load, so paths are written without the
``{http://maven.apache.org/POM/4.0.0}`` prefix.
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Sequence

from errors import MalformedDescriptorError


def _strip_namespaces(root: ET.Element) -> ET.Element:
    for elem in root.iter():
        if isinstance(elem.tag, str) and elem.tag.startswith("{"):
            elem.tag = elem.tag.split("}", 1)[1]
    return root


def root_element(document: str, expected_tag: str) -> ET.Element:
    """Parse ``document`` and return its root, which must be ``expected_tag``.

    Raises:
        MalformedDescriptorError: if the document is not well formed or the
            root element has another name.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise MalformedDescriptorError(f"Cannot parse <{expected_tag}> document: {exc}") from exc
    _strip_namespaces(root)
    if root.tag != expected_tag:
        raise MalformedDescriptorError(f"Expected <{expected_tag}> root, found <{root.tag}>")
    return root


def get_elements(node: Optional[ET.Element], path: str) -> List[ET.Element]:
    """Return child elements at ``path`` (slash separated) in document order."""
    if node is None:
        return []
    return node.findall(path)


def get_element(node: Optional[ET.Element], path: str) -> Optional[str]:
    """Return the stripped text of the first element at ``path``, or None."""
    if node is None:
        return None
    elem = node.find(path)
    if elem is None or elem.text is None:
        return None
    text = elem.text.strip()
    return text or None


def last_element(nodes: Sequence[ET.Element]) -> Optional[ET.Element]:
    """Return the last element of ``nodes``, or None if empty."""
    if not nodes:
        return None
    return nodes[-1]


def properties(node: Optional[ET.Element]) -> Dict[str, str]:
    """Return the ``<properties>`` block of a project as a dict."""
    result: Dict[str, str] = {}
    block = last_element(get_elements(node, "properties"))
    if block is None:
        return result
    for prop in block:
        if isinstance(prop.tag, str) and prop.text is not None:
            result[prop.tag] = prop.text.strip()
    return result
