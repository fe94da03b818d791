"""Display numbering for dataroom trees ("1", "2", "2.1", ...).

Pure functions with no I/O: indexes are derived on every read and never
stored. Folders and documents under the same parent are siblings and share
one numbering sequence.
"""

from typing import Dict, Iterable, List, NamedTuple, Optional


class IndexNode(NamedTuple):
    id: str
    parent_id: Optional[str]
    name: str
    order_index: Optional[int]


def sibling_sort_key(node: IndexNode):
    """orderIndex ascending with nulls last, then name."""
    return (
        node.order_index is None,
        node.order_index if node.order_index is not None else 0,
        node.name.casefold(),
        node.name,
        node.id,
    )


def folder_node(folder) -> IndexNode:
    return IndexNode(folder.id, folder.parent_id, folder.name, folder.order_index)


def document_node(document) -> IndexNode:
    return IndexNode(document.id, document.folder_id, document.name, document.order_index)


def calculate_hierarchical_indexes(
    items: Iterable[IndexNode],
    folders: Iterable[IndexNode],
) -> Dict[str, str]:
    """Map every item and folder id to its hierarchical index.

    Nodes whose declared parent is not among ``folders`` are numbered at the
    root level. Folders unreachable from the root (their parent chain forms
    a loop) are appended after the regular root siblings so every node still
    receives a number and traversal always terminates.
    """
    folder_list = list(folders)
    folder_ids = {f.id for f in folder_list}
    nodes: List[IndexNode] = folder_list + list(items)

    children: Dict[Optional[str], List[IndexNode]] = {}
    for node in nodes:
        parent = node.parent_id if node.parent_id in folder_ids else None
        children.setdefault(parent, []).append(node)
    for siblings in children.values():
        siblings.sort(key=sibling_sort_key)

    result: Dict[str, str] = {}

    def assign(parent_id: Optional[str], prefix: str, start: int) -> int:
        position = start
        for node in children.get(parent_id, []):
            if node.id in result:
                continue
            position += 1
            index = f"{prefix}.{position}" if prefix else str(position)
            result[node.id] = index
            if node.id in folder_ids:
                assign(node.id, index, 0)
        return position

    last_root = assign(None, "", 0)

    # Folders trapped in a parent loop never hang off the root.
    for folder in sorted(folder_list, key=sibling_sort_key):
        if folder.id in result:
            continue
        last_root += 1
        index = str(last_root)
        result[folder.id] = index
        assign(folder.id, index, 0)

    return result
