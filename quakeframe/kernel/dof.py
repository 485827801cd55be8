# quakeframe/kernel/dof.py
"""
DOF MANAGER: Node-ID to Global Degree-of-Freedom Indexing
=========================================================

PURPOSE:
--------
Maps (node_id, local_dof) to a row/column of the global system.

A 3D truss node has 3 translational DOFs (ux, uy, uz). Node ids are strings
supplied by the model, so the manager carries the node ordering explicitly:

    dof = DOFManager.for_nodes(["A", "B", "C"])
    dof.idx("B", 1)        # -> 4  (uy of the second node)
    dof.node_dofs("C")     # -> [6, 7, 8]
    dof.ndof               # -> 9

Numbering follows the node insertion order of the model, so the same snapshot
always produces the same system.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping


# Local DOF numbering for truss nodes
UX, UY, UZ = 0, 1, 2


@dataclass(frozen=True)
class DOFManager:
    """
    Degree-of-freedom indexing for a set of nodes.

    Attributes:
    -----------
    node_index : Mapping[str, int]
        Node id -> 0-based node position in the system
    dof_per_node : int
        3 for a 3D truss (ux, uy, uz)
    """
    node_index: Mapping[str, int]
    dof_per_node: int = 3

    @classmethod
    def for_nodes(cls, node_ids: Iterable[str], dof_per_node: int = 3) -> "DOFManager":
        return cls({node_id: i for i, node_id in enumerate(node_ids)}, dof_per_node)

    @property
    def ndof(self) -> int:
        """Total DOFs (size of K)."""
        return self.dof_per_node * len(self.node_index)

    def idx(self, node_id: str, local_dof: int) -> int:
        """
        Global DOF index of a node's local DOF.

        Raises:
            KeyError: if node_id is not part of the system
        """
        return self.dof_per_node * self.node_index[node_id] + local_dof

    def node_dofs(self, node_id: str) -> List[int]:
        """All global DOF indices of one node, in local order."""
        base = self.dof_per_node * self.node_index[node_id]
        return list(range(base, base + self.dof_per_node))

    def element_dof_map(self, node_ids: Iterable[str]) -> List[int]:
        """
        Scatter/gather map for an element.

        >>> dof = DOFManager.for_nodes(["A", "B", "C"])
        >>> dof.element_dof_map(["C", "A"])
        [6, 7, 8, 0, 1, 2]
        """
        result = []
        for node_id in node_ids:
            result.extend(self.node_dofs(node_id))
        return result

    def node_vectors(self, d: Iterable[float]) -> Dict[str, tuple]:
        """Split a global vector into per-node (x, y, z) tuples."""
        values = list(d)
        out = {}
        for node_id, i in self.node_index.items():
            base = self.dof_per_node * i
            out[node_id] = tuple(float(v) for v in values[base:base + self.dof_per_node])
        return out
