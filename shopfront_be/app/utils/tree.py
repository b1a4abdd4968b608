"""Helpers for turning flat parent-keyed rows into nested trees.

Collections nest on ``parent_id``; mega-menu items nest on ``parent_menu_item_id``.
Both use the same builder. Rows are plain dicts so the functions stay independent
of the ORM and easy to test.
"""
from typing import Any, Dict, Iterable, List, Optional, Set

Node = Dict[str, Any]


def build_tree(items: List[Node], parent_id: Optional[int] = None, parent_key: str = "parent_id") -> List[Node]:
    """Nest ``items`` under the row whose id equals each row's ``parent_key``.

    Starts from rows whose parent is ``parent_id`` (roots by default). Input order
    is kept among siblings. Rows that cannot be reached from a root are dropped.
    """
    tree: List[Node] = []
    for item in items:
        if item.get(parent_key) == parent_id:
            node = dict(item)
            node["children"] = build_tree(items, item["id"], parent_key)
            tree.append(node)
    return tree


def roll_up_counts(nodes: List[Node], own_key: str = "products_count", total_key: str = "total_products_count") -> int:
    """Post-order: total = own count + sum of the children's totals. Returns the sum for ``nodes``."""
    grand_total = 0
    for node in nodes:
        children_total = roll_up_counts(node.get("children") or [], own_key, total_key)
        node[total_key] = int(node.get(own_key) or 0) + children_total
        grand_total += node[total_key]
    return grand_total


def sort_tree(nodes: List[Node], key: str = "position") -> List[Node]:
    nodes.sort(key=lambda n: (n.get(key) or 0))
    for node in nodes:
        sort_tree(node.get("children") or [], key)
    return nodes


def descendant_ids(rows: Iterable[Node], root_id: int, parent_key: str = "parent_id") -> Set[int]:
    """Ids of every row below ``root_id`` (excluding it)."""
    children_of: Dict[Optional[int], List[int]] = {}
    for row in rows:
        children_of.setdefault(row.get(parent_key), []).append(row["id"])
    found: Set[int] = set()
    stack = list(children_of.get(root_id, []))
    while stack:
        current = stack.pop()
        if current in found or current == root_id:
            continue
        found.add(current)
        stack.extend(children_of.get(current, []))
    return found


def flat_totals(rows: List[Node], own_key: str = "products_count") -> Dict[int, int]:
    """Rolled-up totals for every row, including rows unreachable from a root."""
    totals: Dict[int, int] = {}
    for row in rows:
        ids = descendant_ids(rows, row["id"]) | {row["id"]}
        totals[row["id"]] = sum(int(r.get(own_key) or 0) for r in rows if r["id"] in ids)
    return totals
