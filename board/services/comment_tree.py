"""
Forest reconstruction for thread comments.

Comments arrive as flat rows, each naming its parent. The store never walks
the self-referential relation; the nested structure is rebuilt here once per
read, iteratively, from the flat list.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from board.schemas.comment_schema import (
    CommentNode,
    CommentRow,
    DELETED_AUTHOR,
    DELETED_BODY,
)


def mask_comment_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Hide body and author of a soft-deleted comment.

    Applied where rows leave the store, before ``build_tree``. The row keeps
    its id and parent so replies stay attached.
    """
    data = dict(row)
    if data.get("is_deleted"):
        data["body"] = DELETED_BODY
        data["author_name"] = DELETED_AUTHOR
        data["author_id"] = None
        data["author_avatar"] = None
    return data


def build_tree(rows: Sequence[Union[CommentRow, Mapping[str, Any]]]) -> List[CommentNode]:
    """Turn flat comment rows into an ordered forest.

    Rows are expected in creation order; that order is kept among roots and
    among each node's children. A row whose parent is not in ``rows`` becomes
    a root. Rows caught in a parent cycle are promoted to roots too, so every
    input row appears exactly once in the output.
    """
    nodes: Dict[int, CommentNode] = {}
    ordered: List[CommentNode] = []
    for row in rows:
        data = row.model_dump() if isinstance(row, CommentRow) else dict(row)
        data["children"] = []
        node = CommentNode(**data)
        nodes[node.comment_id] = node
        ordered.append(node)

    roots: List[CommentNode] = []
    for node in ordered:
        parent = _parent_of(node, nodes)
        if parent is not None:
            parent.children.append(node)
        else:
            roots.append(node)

    if len(roots) == len(ordered):
        return roots

    # Anything not reachable from a root sits on a parent cycle
    reachable = _reachable_ids(roots)
    for node in ordered:
        if node.comment_id in reachable:
            continue
        parent = nodes[node.parent_comment_id]
        parent.children = [c for c in parent.children if c is not node]
        roots.append(node)
        reachable.update(_reachable_ids([node]))

    return roots


def _parent_of(node: CommentNode, nodes: Dict[int, CommentNode]) -> Optional[CommentNode]:
    if node.parent_comment_id is None:
        return None
    return nodes.get(node.parent_comment_id)


def _reachable_ids(roots: Iterable[CommentNode]) -> Set[int]:
    seen: Set[int] = set()
    stack = list(roots)
    while stack:
        node = stack.pop()
        if node.comment_id in seen:
            continue
        seen.add(node.comment_id)
        stack.extend(node.children)
    return seen


def iter_nodes(forest: Iterable[CommentNode]):
    """Depth-first, pre-order walk in display order"""
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def count_nodes(forest: Iterable[CommentNode]) -> int:
    """Number of nodes across every tree in ``forest``"""
    return sum(1 for _ in iter_nodes(forest))
