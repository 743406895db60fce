"""
Per-Label Geometry Pipeline

Turns one label of a segmentation volume into a tagged triangle surface:

1. Binary threshold (voxel == label → 1, else 0)
2. Marching cubes at iso_level with vertex normals, in world coordinates
3. Windowed-sinc smoothing (optional)
4. Topology-preserving decimation (optional)
5. Per-triangle label tagging

Each call owns its intermediate buffers; only the final tagged surface
leaves the pipeline. The input volume is never modified.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy.ndimage import find_objects
from skimage.measure import marching_cubes

from .config import ReconstructionConfig, SmoothingParams, DecimationParams, DEFAULT_CONFIG
from .errors import EmptyGeometryError
from .events import EventKind
from .store import MeshObject
from .surface import Surface, surface_to_polydata, polydata_to_surface, VTK_AVAILABLE
from .volume import Volume

if VTK_AVAILABLE:
    import vtk

logger = logging.getLogger(__name__)


@dataclass
class LabelResult:
    """Outcome of one label. mesh is None unless status is FINISHED."""
    label: int
    status: EventKind
    mesh: Optional[MeshObject] = None
    elapsed: float = 0.0
    message: str = ""

    @property
    def n_vertices(self) -> int:
        return self.mesh.n_vertices if self.mesh is not None else 0

    @property
    def n_faces(self) -> int:
        return self.mesh.n_faces if self.mesh is not None else 0


def label_bounding_box(data: np.ndarray, label: int, margin: int = 1) -> Optional[Tuple[slice, slice, slice]]:
    """
    Index box around every voxel equal to `label`, grown by `margin`.

    The margin keeps a background layer around the label so the cropped
    isosurface matches the full-volume one. Returns None if the label is absent.
    """
    found = find_objects((data == label).view(np.uint8))
    if not found or found[0] is None:
        return None
    return tuple(
        slice(max(s.start - margin, 0), min(s.stop + margin, n))
        for s, n in zip(found[0], data.shape)
    )


def _normals_pass(poly: "vtk.vtkPolyData") -> "vtk.vtkPolyData":
    """Recompute point normals without splitting vertices or reordering faces."""
    normals = vtk.vtkPolyDataNormals()
    normals.SetInputData(poly)
    normals.ComputePointNormalsOn()
    normals.ComputeCellNormalsOff()
    normals.SplittingOff()
    normals.ConsistencyOff()
    normals.AutoOrientNormalsOff()
    normals.Update()
    return normals.GetOutput()


class GeometryPipeline:
    """
    Reconstructs label surfaces from a labeled volume.

    Holds only configuration, so one instance can be shared by all
    worker threads.
    """

    def __init__(self, config: Optional[ReconstructionConfig] = None):
        self.config = config or DEFAULT_CONFIG

    @property
    def smoothing(self) -> SmoothingParams:
        return self.config.smoothing

    @property
    def decimation(self) -> DecimationParams:
        return self.config.decimation

    def threshold(self, volume: Volume, label: int) -> Tuple[np.ndarray, Tuple[float, float, float]]:
        """
        Binary uint8 mask of `label`, cropped to the label's bounding box.

        Returns:
            Tuple of (mask, origin of the cropped block in world units)
        """
        box = label_bounding_box(volume.data, label)
        if box is None:
            return np.zeros((0, 0, 0), dtype=np.uint8), volume.origin

        block = volume.data[box]
        mask = (block == label).astype(np.uint8)
        start = np.array([s.start for s in box], dtype=float)
        origin = tuple(float(o) for o in volume.index_to_world(start[None, :])[0])
        return mask, origin

    def extract_surface(
        self,
        mask: np.ndarray,
        spacing: Tuple[float, float, float],
        origin: Tuple[float, float, float]
    ) -> Surface:
        """
        Marching cubes on a binary mask.

        Returns an empty Surface when the mask has no crossing at iso_level
        or is too small for marching cubes.
        """
        level = self.config.iso_level
        if mask.size == 0 or not (mask.min() < level < mask.max()):
            return Surface.empty()

        try:
            verts, faces, normals, _ = marching_cubes(
                mask,
                level=level,
                spacing=spacing,
                allow_degenerate=False
            )
        except (ValueError, RuntimeError) as e:
            logger.debug(f"Marching cubes produced no surface: {e}")
            return Surface.empty()

        verts = verts + np.asarray(origin)
        return Surface(vertices=verts, faces=faces, normals=normals)

    def smooth(self, surface: Surface) -> Surface:
        """Windowed-sinc smoothing; returns the input when disabled."""
        params = self.smoothing
        if not params.enabled or params.iterations == 0 or surface.n_faces == 0:
            return surface
        if not VTK_AVAILABLE:
            raise ImportError("vtk required for surface smoothing")

        smoother = vtk.vtkWindowedSincPolyDataFilter()
        smoother.SetInputData(surface_to_polydata(surface))
        smoother.SetNumberOfIterations(params.iterations)
        smoother.SetBoundarySmoothing(params.boundary_smoothing)
        smoother.SetFeatureEdgeSmoothing(params.feature_edge_smoothing)
        smoother.SetFeatureAngle(params.feature_angle)
        smoother.SetPassBand(params.pass_band)
        smoother.SetNormalizeCoordinates(params.normalize_coordinates)
        smoother.Update()

        smoothed = polydata_to_surface(_normals_pass(smoother.GetOutput()))
        logger.debug(f"Smoothed {surface.n_vertices} verts ({params.iterations} iterations)")
        return smoothed

    def decimate(self, surface: Surface) -> Surface:
        """Topology-preserving decimation; returns the input when disabled."""
        params = self.decimation
        if not params.enabled or params.keep_fraction >= 1.0 or surface.n_faces < 2:
            return surface
        if not VTK_AVAILABLE:
            raise ImportError("vtk required for decimation")

        decimator = vtk.vtkDecimatePro()
        decimator.SetInputData(surface_to_polydata(surface))
        decimator.SetTargetReduction(params.target_reduction)
        decimator.SetPreserveTopology(params.preserve_topology)
        decimator.SplittingOff()
        decimator.Update()

        decimated = polydata_to_surface(_normals_pass(decimator.GetOutput()))
        logger.debug(f"Decimated: {surface.n_faces}→{decimated.n_faces} faces")
        return decimated

    def build_surface(self, volume: Volume, label: int) -> Surface:
        """
        Run threshold → isosurface → smooth → decimate → tag for one label.

        Raises:
            EmptyGeometryError: the isosurface has zero vertices
        """
        mask, origin = self.threshold(volume, label)
        surface = self.extract_surface(mask, volume.spacing, origin)
        del mask
        if surface.is_empty:
            raise EmptyGeometryError(f"Label {label} produced empty surface")

        surface = self.smooth(surface)
        surface = self.decimate(surface)
        return surface.tagged(label)

    def run(self, volume: Volume, label: int) -> LabelResult:
        """
        Reconstruct one label.

        Empty geometry is reported as an EMPTY result; any other exception
        propagates to the caller (the scheduler confines it to this label).
        """
        start = time.perf_counter()
        try:
            surface = self.build_surface(volume, label)
        except EmptyGeometryError as e:
            return LabelResult(
                label=label,
                status=EventKind.EMPTY,
                elapsed=time.perf_counter() - start,
                message=str(e)
            )

        mesh = MeshObject(label=label, surface=surface, origin=volume.origin)
        return LabelResult(
            label=label,
            status=EventKind.FINISHED,
            mesh=mesh,
            elapsed=time.perf_counter() - start
        )


def reconstruct_label(
    volume: Volume,
    label: int,
    config: Optional[ReconstructionConfig] = None
) -> LabelResult:
    """Convenience wrapper: GeometryPipeline(config).run(volume, label)."""
    return GeometryPipeline(config).run(volume, label)
