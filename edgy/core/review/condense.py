"""Node-tree condensation for review payloads.

Keeps affected nodes, every ancestor of an affected node, and the
siblings of each affected node. Dropped children are collapsed into a
single ``_omitted`` placeholder per parent that reports how many were
left out.
"""

from typing import Any, Dict, Iterable, Set

from ..analysis.models import VisualNode

OMITTED_ID = "_omitted"
OMITTED_TYPE = "OMITTED"


def _keep_ids(root: VisualNode, affected_ids: Iterable[str]) -> Set[str]:
    parents: Dict[str, VisualNode] = {}
    by_id: Dict[str, VisualNode] = {}
    for node in root.walk():
        by_id[node.id] = node
        for child in node.children:
            parents[child.id] = node

    keep: Set[str] = set()
    for node_id in affected_ids:
        if node_id not in by_id:
            continue
        keep.add(node_id)

        parent = parents.get(node_id)
        if parent is not None:
            keep.update(sibling.id for sibling in parent.children)

        current = parent
        while current is not None:
            keep.add(current.id)
            current = parents.get(current.id)
    return keep


def _condense(node: VisualNode, keep: Set[str]) -> Dict[str, Any]:
    children = []
    skipped = 0
    for child in node.children:
        if child.id in keep:
            children.append(_condense(child, keep))
        else:
            skipped += 1

    if skipped:
        children.append({
            "id": OMITTED_ID,
            "name": f"[{skipped} other children omitted]",
            "type": OMITTED_TYPE,
            "children": [],
        })

    data: Dict[str, Any] = {"id": node.id, "name": node.name, "type": node.type}
    if node.component_name:
        data["componentName"] = node.component_name
    if node.text_content:
        data["textContent"] = node.text_content
    data["children"] = children
    return data


def condense_node_tree(root: VisualNode, affected_ids: Iterable[str]) -> Dict[str, Any]:
    """Pruned JSON-ready copy of ``root`` around the affected nodes."""
    keep = _keep_ids(root, affected_ids)
    if root.id not in keep:
        return {"id": root.id, "name": root.name, "type": root.type, "children": []}
    return _condense(root, keep)
