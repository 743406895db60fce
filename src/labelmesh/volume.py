"""
Volume data model and NIfTI I/O.

A Volume is a read-only 3D label grid indexed [i, j, k] (i along x) with
per-axis spacing and an origin. World coordinates: origin + index * spacing.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import nibabel as nib
from nibabel.filebasedimages import ImageFileError

from .errors import VolumeLoadError

logger = logging.getLogger(__name__)


@dataclass
class Volume:
    """
    3D scalar grid shared read-only by all reconstruction workers.

    data is stored as a non-writeable view; the caller's array is untouched.
    """
    data: Optional[np.ndarray]
    spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        if self.data is not None:
            view = np.asarray(self.data).view()
            view.flags.writeable = False
            self.data = view
        self.spacing = tuple(float(s) for s in self.spacing)
        self.origin = tuple(float(o) for o in self.origin)
        if len(self.spacing) != 3 or len(self.origin) != 3:
            raise ValueError("spacing and origin must have 3 components")

    @property
    def dims(self) -> Tuple[int, ...]:
        if self.data is None:
            return ()
        return tuple(self.data.shape)

    @property
    def n_voxels(self) -> int:
        return 0 if self.data is None else int(self.data.size)

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return (min_corner, max_corner) of the voxel centers in world units."""
        lo = np.asarray(self.origin)
        hi = lo + (np.asarray(self.dims) - 1) * np.asarray(self.spacing)
        return lo, hi

    @property
    def affine(self) -> np.ndarray:
        """Axis-aligned 4x4 index → world transform."""
        affine = np.diag(list(self.spacing) + [1.0])
        affine[:3, 3] = self.origin
        return affine

    def index_to_world(self, indices: np.ndarray) -> np.ndarray:
        """Convert (N, 3) fractional voxel indices to world coordinates."""
        return np.asarray(indices, dtype=float) * np.asarray(self.spacing) + np.asarray(self.origin)


def load_volume(path: Union[str, Path]) -> Volume:
    """
    Load a labeled mask from a NIfTI file.

    Spacing comes from the header zooms, origin from the affine translation.
    Direction cosines are not applied; vertices are placed on the
    axis-aligned grid. A trailing singleton 4th axis is dropped.

    Args:
        path: Path to .nii / .nii.gz file

    Returns:
        Volume with the on-disk label values

    Raises:
        VolumeLoadError: if the file is missing, unreadable or not 3D
    """
    path = Path(path)
    try:
        img = nib.load(str(path))
        data = np.asanyarray(img.dataobj)
    except (OSError, ImageFileError, ValueError) as e:
        raise VolumeLoadError(f"Failed to read volume {path}: {e}") from e

    if data.ndim == 4 and data.shape[3] == 1:
        data = data[..., 0]
    if data.ndim != 3:
        raise VolumeLoadError(f"Expected a 3D volume in {path}, got shape {data.shape}")

    spacing = tuple(float(z) for z in img.header.get_zooms()[:3])
    origin = tuple(float(o) for o in img.affine[:3, 3])

    volume = Volume(data=data, spacing=spacing, origin=origin)

    logger.info(f"Loaded volume {path}")
    logger.info(f"Image dims: {' x '.join(str(d) for d in volume.dims)}")
    logger.info(f"Spacing   : {', '.join(f'{s:g}' for s in volume.spacing)}")
    logger.info(f"Origin    : {', '.join(f'{o:g}' for o in volume.origin)}")
    lo, hi = volume.bounds
    logger.debug(f"Bounds    : [{', '.join(f'{v:g}' for v in lo)}] - [{', '.join(f'{v:g}' for v in hi)}]")

    return volume


def save_volume(volume: Volume, path: Union[str, Path]) -> None:
    """Write a Volume as NIfTI with an axis-aligned affine."""
    if volume.data is None:
        raise ValueError("Cannot save a volume without data")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = np.asarray(volume.data)
    # NIfTI has no bool type and nibabel refuses implicit int64
    if data.dtype == np.bool_:
        data = data.astype(np.uint8)
    elif data.dtype == np.int64:
        data = data.astype(np.int32)
    img = nib.Nifti1Image(data, volume.affine)
    img.header.set_zooms(volume.spacing)
    nib.save(img, str(path))
    logger.info(f"Saved volume: {path}")
