"""
Per-label mesh results and the thread-safe store that collects them.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

from .surface import Surface


@dataclass(frozen=True)
class MeshObject:
    """
    Tagged surface for one label.

    Every triangle of `surface` carries `label` in surface.labels.
    origin is the source Volume's origin.
    """
    label: int
    surface: Surface
    origin: Tuple[float, float, float]

    @property
    def n_vertices(self) -> int:
        return self.surface.n_vertices

    @property
    def n_faces(self) -> int:
        return self.surface.n_faces


class ResultStore:
    """
    Append-only collection of MeshObjects.

    append() is serialized by a lock and may be called from any worker.
    Reads are unsynchronized and only valid after freeze(), which the
    builder calls once every worker has joined.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._meshes: List[MeshObject] = []
        self._by_label: Dict[int, MeshObject] = {}
        self._frozen = False

    def append(self, mesh: MeshObject) -> None:
        """
        Add one label's mesh.

        Raises:
            ValueError: a mesh for this label is already stored
            RuntimeError: the store has been frozen
        """
        with self._lock:
            if self._frozen:
                raise RuntimeError("ResultStore is frozen; no appends after the build")
            if mesh.label in self._by_label:
                raise ValueError(f"Duplicate mesh for label {mesh.label}")
            self._by_label[mesh.label] = mesh
            self._meshes.append(mesh)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def labels(self) -> Tuple[int, ...]:
        """Stored labels, ascending."""
        return tuple(sorted(self._by_label))

    def sorted_by_label(self) -> List[MeshObject]:
        return [self._by_label[label] for label in self.labels]

    def __iter__(self) -> Iterator[MeshObject]:
        """Meshes in completion order."""
        return iter(self._meshes)

    def __len__(self) -> int:
        return len(self._meshes)

    def __bool__(self) -> bool:
        return bool(self._meshes)
