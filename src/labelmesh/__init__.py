"""
labelmesh - Label-parallel surface reconstruction from segmentation masks.

Each positive label of a 3D mask becomes one triangulated surface
(threshold → marching cubes → smoothing → decimation → label tagging),
built concurrently on a worker pool and exported as one combined mesh:
- Plain: binary STL, geometry only
- Attributed: binary VTP with a per-triangle "Label" array

Usage:
    labelmesh mask.nii.gz out.vtp 8
"""

from .config import ReconstructionConfig, SmoothingParams, DecimationParams, DEFAULT_CONFIG
from .errors import (
    ErrorKind, LabelMeshError, InvalidInputError, VolumeLoadError, NoLabelsFoundError,
    EmptyGeometryError, EmptyCollectionError, WriteFailureError,
)
from .volume import Volume, load_volume, save_volume
from .labels import extract_labels
from .surface import Surface, merge_surfaces
from .store import MeshObject, ResultStore
from .pipeline import GeometryPipeline, LabelResult, reconstruct_label
from .scheduler import CancelToken, WorkCursor, resolve_thread_count, run_workers
from .export import ExportResult, export_plain, export_attributed, read_attributed
from .builder import MeshBuilder, BuildReport

__version__ = "1.0.0"

__all__ = [
    'ReconstructionConfig', 'SmoothingParams', 'DecimationParams', 'DEFAULT_CONFIG',
    'ErrorKind', 'LabelMeshError', 'InvalidInputError', 'VolumeLoadError', 'NoLabelsFoundError',
    'EmptyGeometryError', 'EmptyCollectionError', 'WriteFailureError',
    'Volume', 'load_volume', 'save_volume',
    'extract_labels',
    'Surface', 'merge_surfaces',
    'MeshObject', 'ResultStore',
    'GeometryPipeline', 'LabelResult', 'reconstruct_label',
    'CancelToken', 'WorkCursor', 'resolve_thread_count', 'run_workers',
    'ExportResult', 'export_plain', 'export_attributed', 'read_attributed',
    'MeshBuilder', 'BuildReport',
]
