"""
Combined mesh export.

- Plain: binary STL via trimesh. STL has no attribute channel, so the
  per-triangle label is dropped.
- Attributed: binary VTK XML PolyData (.vtp) with an integer cell array
  (default name "Label") holding each triangle's source label.

Meshes are concatenated in ascending label order so the written file does
not depend on worker completion order.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import EmptyCollectionError, WriteFailureError, ErrorKind
from .store import MeshObject
from .surface import Surface, merge_surfaces, surface_to_polydata, polydata_to_surface, VTK_AVAILABLE

if VTK_AVAILABLE:
    import vtk

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class ExportResult:
    """Status of one export call."""
    ok: bool
    path: Path
    n_meshes: int = 0
    n_vertices: int = 0
    n_faces: int = 0
    error: Optional[ErrorKind] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "path": str(self.path),
            "n_meshes": self.n_meshes,
            "n_vertices": self.n_vertices,
            "n_faces": self.n_faces,
            "error": self.error.value if self.error else None,
            "message": self.message
        }


def _merge(meshes: Iterable[MeshObject]) -> List[MeshObject]:
    ordered = sorted(meshes, key=lambda m: m.label)
    if not ordered:
        raise EmptyCollectionError("No meshes to export.")
    return ordered


def export_plain(meshes: Iterable[MeshObject], path: PathLike) -> ExportResult:
    """
    Write all surfaces as one binary STL without labels.

    Raises:
        EmptyCollectionError: no meshes (nothing is written)
        WriteFailureError: the file could not be written
    """
    path = Path(path)
    ordered = _merge(meshes)
    merged = merge_surfaces([m.surface for m in ordered])

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        merged.to_trimesh().export(str(path), file_type="stl")
    except (OSError, ValueError) as e:
        raise WriteFailureError(f"Failed to export STL {path}: {e}") from e

    logger.info(f"Exported STL with {len(ordered)} label meshes -> {path}")
    return ExportResult(
        ok=True,
        path=path,
        n_meshes=len(ordered),
        n_vertices=merged.n_vertices,
        n_faces=merged.n_faces
    )


def export_attributed(
    meshes: Iterable[MeshObject],
    path: PathLike,
    label_array_name: str = "Label"
) -> ExportResult:
    """
    Write all surfaces as one binary .vtp keeping the per-triangle label.

    Raises:
        EmptyCollectionError: no meshes (nothing is written)
        WriteFailureError: the writer reported failure
    """
    if not VTK_AVAILABLE:
        raise ImportError("vtk required for VTP export")

    path = Path(path)
    ordered = _merge(meshes)
    merged = merge_surfaces([m.surface for m in ordered])
    poly = surface_to_polydata(merged, label_array_name)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteFailureError(f"Failed to export VTP {path}: {e}") from e

    writer = vtk.vtkXMLPolyDataWriter()
    writer.SetFileName(str(path))
    writer.SetInputData(poly)
    writer.SetDataModeToBinary()
    writer.EncodeAppendedDataOff()
    if writer.Write() != 1:
        raise WriteFailureError(f"Failed to export VTP {path}")

    logger.info(f"Exported VTP with {len(ordered)} label meshes -> {path}")
    return ExportResult(
        ok=True,
        path=path,
        n_meshes=len(ordered),
        n_vertices=merged.n_vertices,
        n_faces=merged.n_faces
    )


def read_attributed(path: PathLike, label_array_name: str = "Label") -> Surface:
    """
    Load an attributed .vtp back into a Surface with per-face labels.

    Raises:
        FileNotFoundError: path does not exist
    """
    if not VTK_AVAILABLE:
        raise ImportError("vtk required for VTP import")

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No such file: {path}")

    reader = vtk.vtkXMLPolyDataReader()
    reader.SetFileName(str(path))
    reader.Update()
    return polydata_to_surface(reader.GetOutput(), label_array_name)
