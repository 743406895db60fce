"""
Label extraction: the distinct positive labels present in a volume.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from .errors import InvalidInputError, NoLabelsFoundError
from .volume import Volume

logger = logging.getLogger(__name__)

# Labels are tagged onto triangles as int32
MAX_LABEL = int(np.iinfo(np.int32).max)


def validate_volume(volume: Optional[Volume]) -> None:
    """Raise InvalidInputError for a missing volume, scalar field or voxels, or a non-3D grid."""
    if volume is None:
        raise InvalidInputError("Volume is None.")
    if volume.data is None:
        raise InvalidInputError("No scalar array in volume.")
    if volume.data.ndim != 3:
        raise InvalidInputError(f"Expected a 3D scalar array, got shape {volume.data.shape}.")
    if volume.data.size == 0:
        raise InvalidInputError("Empty scalar array.")


def extract_labels(volume: Optional[Volume]) -> Tuple[int, ...]:
    """
    Collect every distinct positive label in the volume.

    Each voxel value is truncated toward zero before comparison, so 2.7
    counts as label 2 and 0.4 as background. Non-finite values are ignored.

    Args:
        volume: Volume to scan

    Returns:
        Ascending tuple of distinct positive integer labels

    Raises:
        InvalidInputError: volume missing, without scalars, empty, not 3D,
            or holding a label above MAX_LABEL
        NoLabelsFoundError: no voxel value is > 0 after truncation
    """
    validate_volume(volume)

    values = volume.data.ravel()
    if np.issubdtype(values.dtype, np.floating):
        values = np.trunc(values[np.isfinite(values)])
    elif values.dtype == np.bool_:
        values = values.astype(np.uint8)

    positive = values[values > 0]
    if positive.size and positive.max() > MAX_LABEL:
        raise InvalidInputError(f"Label {int(positive.max())} exceeds the maximum label {MAX_LABEL}.")
    labels = tuple(int(v) for v in np.unique(positive.astype(np.int64)))

    if not labels:
        raise NoLabelsFoundError("No positive labels found in mask.")

    logger.info(f"Found {len(labels)} labels.")
    logger.debug(f"Labels: {list(labels)}")
    return labels
