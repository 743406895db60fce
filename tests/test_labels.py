"""
Tests for the Volume model and label extraction.
"""

import numpy as np
import pytest

from labelmesh.errors import InvalidInputError, NoLabelsFoundError, VolumeLoadError, ErrorKind
from labelmesh.labels import MAX_LABEL, extract_labels
from labelmesh.volume import Volume, load_volume, save_volume


# ============== Volume Tests ==============

class TestVolume:
    """Test the read-only volume container."""

    def test_data_is_read_only_view(self):
        """Volume data should be non-writeable without touching the caller's array."""
        data = np.zeros((4, 4, 4), dtype=np.int16)
        volume = Volume(data=data)

        assert volume.data.flags.writeable is False
        assert data.flags.writeable is True
        with pytest.raises(ValueError):
            volume.data[0, 0, 0] = 1

    def test_dims_and_affine(self, cube_volume):
        assert cube_volume.dims == (12, 10, 9)
        assert cube_volume.n_voxels == 12 * 10 * 9

        affine = cube_volume.affine
        np.testing.assert_allclose(np.diag(affine)[:3], [2.0, 1.0, 0.5])
        np.testing.assert_allclose(affine[:3, 3], [10.0, -4.0, 3.0])

    def test_bounds_span_voxel_centers(self, cube_volume):
        lo, hi = cube_volume.bounds
        np.testing.assert_allclose(lo, [10.0, -4.0, 3.0])
        np.testing.assert_allclose(hi, [10.0 + 11 * 2.0, -4.0 + 9 * 1.0, 3.0 + 8 * 0.5])

    def test_index_to_world(self, cube_volume):
        world = cube_volume.index_to_world(np.array([[0, 0, 0], [1, 2, 4]]))
        np.testing.assert_allclose(world, [[10.0, -4.0, 3.0], [12.0, -2.0, 5.0]])

    def test_bad_origin_length(self):
        with pytest.raises(ValueError):
            Volume(data=np.zeros((2, 2, 2)), origin=(0.0, 0.0))


class TestVolumeIO:
    """Test NIfTI load/save."""

    def test_round_trip(self, tmp_path, cube_volume):
        path = tmp_path / "mask.nii.gz"
        save_volume(cube_volume, path)

        loaded = load_volume(path)

        assert loaded.dims == cube_volume.dims
        np.testing.assert_allclose(loaded.spacing, cube_volume.spacing)
        np.testing.assert_allclose(loaded.origin, cube_volume.origin)
        np.testing.assert_array_equal(loaded.data, cube_volume.data)

    def test_int64_data_is_saved(self, tmp_path):
        data = np.zeros((3, 3, 3), dtype=np.int64)
        data[1, 1, 1] = 9
        path = tmp_path / "wide.nii"
        save_volume(Volume(data=data), path)

        assert extract_labels(load_volume(path)) == (9,)

    def test_trailing_singleton_axis_dropped(self, tmp_path):
        import nibabel as nib

        data = np.zeros((4, 5, 6, 1), dtype=np.int16)
        data[1, 1, 1, 0] = 2
        path = tmp_path / "four_d.nii.gz"
        nib.save(nib.Nifti1Image(data, np.eye(4)), str(path))

        volume = load_volume(path)
        assert volume.dims == (4, 5, 6)

    def test_missing_file(self, tmp_path):
        with pytest.raises(VolumeLoadError) as exc_info:
            load_volume(tmp_path / "nope.nii.gz")
        assert exc_info.value.kind is ErrorKind.INVALID_INPUT

    def test_two_dimensional_rejected(self, tmp_path):
        import nibabel as nib

        path = tmp_path / "flat.nii.gz"
        nib.save(nib.Nifti1Image(np.zeros((4, 4), dtype=np.int16), np.eye(4)), str(path))

        with pytest.raises(VolumeLoadError):
            load_volume(path)


# ============== Label Extraction Tests ==============

class TestExtractLabels:
    """Test the distinct positive label scan."""

    def test_scenario_a_labels(self, scenario_a_volume):
        assert extract_labels(scenario_a_volume) == (1, 3, 5)

    def test_labels_are_ascending_python_ints(self):
        data = np.zeros((3, 3, 3), dtype=np.int32)
        data[0, 0, 0] = 40
        data[1, 1, 1] = 2
        data[2, 2, 2] = 17

        labels = extract_labels(Volume(data=data))

        assert labels == (2, 17, 40)
        assert all(type(v) is int for v in labels)

    def test_float_values_truncate(self):
        """2.7 counts as 2, 0.4 is background, negatives and NaN are ignored."""
        data = np.zeros((2, 2, 2), dtype=np.float32)
        data[0, 0, 0] = 2.7
        data[0, 0, 1] = 0.4
        data[0, 1, 0] = -3.0
        data[1, 0, 0] = np.nan
        data[1, 1, 1] = 6.0

        assert extract_labels(Volume(data=data)) == (2, 6)

    def test_negative_labels_excluded(self):
        data = np.full((3, 3, 3), -1, dtype=np.int8)
        data[1, 1, 1] = 4

        assert extract_labels(Volume(data=data)) == (4,)

    def test_no_labels(self, empty_volume):
        with pytest.raises(NoLabelsFoundError) as exc_info:
            extract_labels(empty_volume)
        assert exc_info.value.kind is ErrorKind.NO_LABELS_FOUND

    def test_none_volume(self):
        with pytest.raises(InvalidInputError):
            extract_labels(None)

    def test_volume_without_scalars(self):
        with pytest.raises(InvalidInputError):
            extract_labels(Volume(data=None))

    def test_zero_elements(self):
        with pytest.raises(InvalidInputError):
            extract_labels(Volume(data=np.zeros((0, 4, 4))))

    @pytest.mark.parametrize("shape", [(10, 10), (4, 4, 4, 2), (6,)])
    def test_non_3d_grid(self, shape):
        data = np.zeros(shape, dtype=np.int16)
        data[(slice(0, 3),) * len(shape)] = 1
        with pytest.raises(InvalidInputError) as exc_info:
            extract_labels(Volume(data=data))
        assert exc_info.value.kind is ErrorKind.INVALID_INPUT

    def test_label_above_int32_range(self):
        """Triangle tags are int32, so larger labels are rejected up front."""
        data = np.zeros((4, 4, 4), dtype=np.int64)
        data[1:3, 1:3, 1:3] = 3_000_000_000
        with pytest.raises(InvalidInputError):
            extract_labels(Volume(data=data))

    def test_largest_int32_label_accepted(self):
        data = np.zeros((4, 4, 4), dtype=np.int64)
        data[1:3, 1:3, 1:3] = MAX_LABEL
        assert extract_labels(Volume(data=data)) == (MAX_LABEL,)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
