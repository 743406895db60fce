"""
Triangle surface container and conversions.

Surface is the plain-array form passed between pipeline stages and stored
in results; trimesh and VTK PolyData are produced on demand for the
geometry filters and writers.
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

import numpy as np
import trimesh

logger = logging.getLogger(__name__)

try:
    import vtk
    from vtk.util import numpy_support as vtk_np
    VTK_AVAILABLE = True
except ImportError:
    VTK_AVAILABLE = False
    logger.warning("vtk not available. Install with: pip install vtk")


@dataclass
class Surface:
    """A 3D triangular surface with optional per-face labels."""
    vertices: np.ndarray  # (N, 3) world positions
    faces: np.ndarray     # (M, 3) triangle vertex indices
    normals: Optional[np.ndarray] = None  # (N, 3) vertex normals
    labels: Optional[np.ndarray] = None   # (M,) per-triangle integer label

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)
        if self.normals is not None:
            self.normals = np.asarray(self.normals, dtype=np.float64).reshape(-1, 3)
        if self.labels is not None:
            self.labels = np.asarray(self.labels, dtype=np.int32).reshape(-1)
            if len(self.labels) != len(self.faces):
                raise ValueError(
                    f"labels has {len(self.labels)} entries for {len(self.faces)} faces"
                )

    @classmethod
    def empty(cls) -> "Surface":
        return cls(vertices=np.empty((0, 3)), faces=np.empty((0, 3), dtype=np.int64))

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    @property
    def n_faces(self) -> int:
        return len(self.faces)

    @property
    def is_empty(self) -> bool:
        return self.n_vertices == 0

    def tagged(self, label: int) -> "Surface":
        """Copy with every triangle stamped with `label`."""
        return replace(self, labels=np.full(self.n_faces, label, dtype=np.int32))

    def to_trimesh(self) -> trimesh.Trimesh:
        """Geometry-only trimesh view (labels are not carried)."""
        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=self.faces,
            vertex_normals=self.normals,
            process=False
        )


def merge_surfaces(surfaces: List[Surface]) -> Surface:
    """
    Concatenate surfaces into one, offsetting face indices.

    Labels are kept only when every input carries them. Normals likewise.

    Args:
        surfaces: Surfaces to concatenate (order is preserved)

    Returns:
        Combined surface
    """
    if not surfaces:
        return Surface.empty()

    offsets = np.cumsum([0] + [s.n_vertices for s in surfaces[:-1]])
    vertices = np.vstack([s.vertices for s in surfaces])
    faces = np.vstack([s.faces + off for s, off in zip(surfaces, offsets)])

    normals = None
    if all(s.normals is not None for s in surfaces):
        normals = np.vstack([s.normals for s in surfaces])

    labels = None
    if all(s.labels is not None for s in surfaces):
        labels = np.concatenate([s.labels for s in surfaces])

    logger.debug(f"Merged {len(surfaces)} surfaces: {len(vertices)} verts, {len(faces)} faces")
    return Surface(vertices=vertices, faces=faces, normals=normals, labels=labels)


def _require_vtk() -> None:
    if not VTK_AVAILABLE:
        raise ImportError("vtk required for PolyData conversion")


def surface_to_polydata(surface: Surface, label_array_name: str = "Label") -> "vtk.vtkPolyData":
    """
    Build a vtkPolyData from a Surface (deep copies of all arrays).

    Normals become active point normals; labels become the active cell
    scalars under `label_array_name`.
    """
    _require_vtk()

    points = vtk.vtkPoints()
    points.SetData(vtk_np.numpy_to_vtk(np.ascontiguousarray(surface.vertices), deep=True))

    connectivity = np.ascontiguousarray(surface.faces.ravel(), dtype=np.int64)
    offsets = np.arange(0, connectivity.size + 1, 3, dtype=np.int64)
    polys = vtk.vtkCellArray()
    polys.SetData(
        vtk_np.numpy_to_vtkIdTypeArray(offsets, deep=True),
        vtk_np.numpy_to_vtkIdTypeArray(connectivity, deep=True)
    )

    poly = vtk.vtkPolyData()
    poly.SetPoints(points)
    poly.SetPolys(polys)

    if surface.normals is not None:
        normals = vtk_np.numpy_to_vtk(np.ascontiguousarray(surface.normals), deep=True)
        normals.SetName("Normals")
        poly.GetPointData().SetNormals(normals)

    if surface.labels is not None:
        labels = vtk_np.numpy_to_vtk(
            np.ascontiguousarray(surface.labels, dtype=np.int32),
            deep=True,
            array_type=vtk.VTK_INT
        )
        labels.SetName(label_array_name)
        poly.GetCellData().AddArray(labels)
        poly.GetCellData().SetActiveScalars(label_array_name)

    return poly


def polydata_to_surface(poly: "vtk.vtkPolyData", label_array_name: str = "Label") -> Surface:
    """
    Read a triangle-only vtkPolyData back into a Surface.

    Raises:
        ValueError: if the polygons are not all triangles
    """
    _require_vtk()

    if poly is None or poly.GetNumberOfPoints() == 0:
        return Surface.empty()

    vertices = vtk_np.vtk_to_numpy(poly.GetPoints().GetData()).copy()

    polys = poly.GetPolys()
    connectivity = vtk_np.vtk_to_numpy(polys.GetConnectivityArray())
    offsets = vtk_np.vtk_to_numpy(polys.GetOffsetsArray())
    if len(offsets) > 1 and not np.all(np.diff(offsets) == 3):
        raise ValueError("PolyData contains non-triangle polygons")
    faces = connectivity.reshape(-1, 3).copy()

    normals = None
    vtk_normals = poly.GetPointData().GetNormals()
    if vtk_normals is not None:
        normals = vtk_np.vtk_to_numpy(vtk_normals).copy()

    labels = None
    vtk_labels = poly.GetCellData().GetArray(label_array_name)
    if vtk_labels is not None:
        labels = vtk_np.vtk_to_numpy(vtk_labels).copy()

    return Surface(vertices=vertices, faces=faces, normals=normals, labels=labels)
