"""Helpers for walking nested structured-text documents."""

from __future__ import annotations

from typing import Any, List


def extract_text_values(data: Any) -> List[str]:
    """
    Collect every ``text`` value of a nested structure, depth first.

    >>> extract_text_values({"children": [{"text": "Hi"}, {"text": "there"}]})
    ['Hi', 'there']
    """
    values: List[str] = []

    def traverse(node: Any) -> None:
        if isinstance(node, list):
            for child in node:
                traverse(child)
        elif isinstance(node, dict):
            if "text" in node and isinstance(node["text"], str):
                values.append(node["text"])
            for key, child in node.items():
                if key != "text":
                    traverse(child)

    traverse(data)
    return values


def reconstruct_object(original: Any, text_values: List[str]) -> Any:
    """
    Rebuild ``original`` with its ``text`` values replaced in order.

    Uses the same traversal order as ``extract_text_values``; if fewer values
    are given than there are text nodes, the remaining nodes keep their text.
    """
    index = 0

    def traverse(node: Any) -> Any:
        nonlocal index
        if isinstance(node, list):
            return [traverse(child) for child in node]
        if isinstance(node, dict):
            rebuilt = {}
            if "text" in node and isinstance(node["text"], str):
                if index < len(text_values):
                    rebuilt["text"] = text_values[index]
                    index += 1
                else:
                    rebuilt["text"] = node["text"]
            for key, child in node.items():
                if key != "text":
                    rebuilt[key] = traverse(child)
            return {key: rebuilt[key] for key in node}
        return node

    return traverse(original)
