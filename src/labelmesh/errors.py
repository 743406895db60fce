"""
Error taxonomy for mask reconstruction.

Errors are raised inside the library and converted into status objects
(BuildReport / ExportResult) at the MeshBuilder boundary, so no failure
terminates the caller.
"""

from enum import Enum


class ErrorKind(Enum):
    """Failure categories reported by builds and exports."""
    INVALID_INPUT = "InvalidInput"
    NO_LABELS_FOUND = "NoLabelsFound"
    EMPTY_GEOMETRY = "EmptyGeometry"
    EMPTY_COLLECTION = "EmptyCollection"
    WRITE_FAILURE = "WriteFailure"


class LabelMeshError(Exception):
    """Base class; `kind` identifies the failure category."""
    kind: ErrorKind = ErrorKind.INVALID_INPUT


class InvalidInputError(LabelMeshError):
    """Missing volume, missing scalar field, or zero voxels."""
    kind = ErrorKind.INVALID_INPUT


class VolumeLoadError(InvalidInputError):
    """The volume file could not be read or is not a 3D grid."""


class NoLabelsFoundError(LabelMeshError):
    """Valid volume without any positive label."""
    kind = ErrorKind.NO_LABELS_FOUND


class EmptyGeometryError(LabelMeshError):
    """A single label produced no surface. Contained per label."""
    kind = ErrorKind.EMPTY_GEOMETRY


class EmptyCollectionError(LabelMeshError):
    """Export requested with no reconstructed meshes."""
    kind = ErrorKind.EMPTY_COLLECTION


class WriteFailureError(LabelMeshError):
    """The mesh writer could not persist the output file."""
    kind = ErrorKind.WRITE_FAILURE
