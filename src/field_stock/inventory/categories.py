"""Category hierarchy: parent-pointer forest with navigation queries."""

import logging
from typing import Iterable, Optional

from field_stock.database.mirror import InventoryMirror
from field_stock.database.models import Category, Part
from field_stock.errors import CategoryCycleError

logger = logging.getLogger(__name__)


class CategoryTree:
    """Read-only view over a set of categories.

    Parents are referenced by category id. Older sheets stored the
    parent's display name instead; such references are mapped to the id
    of the category with that name. A parent that matches nothing makes
    the category a root. A cycle raises ``CategoryCycleError``.
    """

    def __init__(self, categories: dict[str, Category]):
        self._categories = dict(categories)
        self._parent: dict[str, Optional[str]] = {
            cid: self._resolve_parent(cat)
            for cid, cat in self._categories.items()
        }
        self._check_acyclic()

        self._children: dict[Optional[str], list[str]] = {}
        for cid, parent in self._parent.items():
            self._children.setdefault(parent, []).append(cid)
        for ids in self._children.values():
            ids.sort(key=lambda i: (self._categories[i].name, i))

    @classmethod
    def from_mirror(cls, mirror: InventoryMirror) -> "CategoryTree":
        return cls(mirror.categories)

    def _resolve_parent(self, category: Category) -> Optional[str]:
        ref = category.parent_id
        if not ref:
            return None
        if ref in self._categories:
            return ref
        by_name = [
            c.id for c in self._categories.values() if c.name == ref
        ]
        if by_name:
            logger.info(
                "Category %s references parent by name %r; using id %s",
                category.id, ref, by_name[0],
            )
            return by_name[0]
        logger.warning(
            "Category %s has unknown parent %r; treating as root",
            category.id, ref,
        )
        return None

    def _check_acyclic(self):
        cleared: set[str] = set()
        for start in self._parent:
            chain = []
            seen = set()
            node = start
            while node is not None and node not in cleared:
                if node in seen:
                    raise CategoryCycleError(chain + [node])
                seen.add(node)
                chain.append(node)
                node = self._parent.get(node)
            cleared.update(seen)

    # ── Lookups ─────────────────────────────────────────────────

    def get(self, category_id: str) -> Optional[Category]:
        return self._categories.get(category_id)

    def parent_of(self, category_id: str) -> Optional[str]:
        return self._parent.get(category_id)

    def roots(self) -> list[Category]:
        return [self._categories[i] for i in self._children.get(None, [])]

    def children(self, category_id: str) -> list[Category]:
        return [
            self._categories[i] for i in self._children.get(category_id, [])
        ]

    def breadcrumb(self, category_id: str) -> list[Category]:
        """Root-to-node path; empty for an unknown id."""
        trail = []
        node = category_id if category_id in self._categories else None
        while node is not None:
            trail.append(self._categories[node])
            node = self._parent[node]
        trail.reverse()
        return trail

    def descendants(self, category_id: str) -> list[str]:
        """Ids below ``category_id``, depth first, siblings by name."""
        found = []
        stack = list(reversed(self._children.get(category_id, [])))
        while stack:
            node = stack.pop()
            found.append(node)
            stack.extend(reversed(self._children.get(node, [])))
        return found

    # ── Members ─────────────────────────────────────────────────

    def exact_members(self, category_id: str,
                      parts: Iterable[Part]) -> list[Part]:
        """Parts filed directly under this category."""
        return _by_name(p for p in parts if p.category_id == category_id)

    def subtree_members(self, category_id: str,
                        parts: Iterable[Part]) -> list[Part]:
        """Parts filed under this category or any descendant."""
        ids = {category_id, *self.descendants(category_id)}
        return _by_name(p for p in parts if p.category_id in ids)


def _by_name(parts: Iterable[Part]) -> list[Part]:
    return sorted(parts, key=lambda p: (p.name, p.id))
