"""
Tests for MeshBuilder: the end-to-end label-parallel build.

Tests cover:
- Scenario A: labels {1, 3, 5} with two threads, plain and attributed export
- Scenario B: no labels, then export fails without writing
- Empty-geometry and failure containment per label
- Determinism across thread counts
- Cancellation and collection replacement
"""

import numpy as np
import pytest

from labelmesh.builder import MeshBuilder
from labelmesh.config import ReconstructionConfig, DecimationParams
from labelmesh.errors import ErrorKind
from labelmesh.export import read_attributed
from labelmesh.scheduler import CancelToken
from labelmesh.volume import Volume


# ============== Scenario Tests ==============

class TestScenarioA:
    """Labels {1, 3, 5}, thread override 2."""

    @pytest.fixture
    def built(self, scenario_a_volume, fast_config):
        builder = MeshBuilder(fast_config)
        report = builder.build(scenario_a_volume, threads=2)
        return builder, report

    def test_build(self, built):
        builder, report = built

        assert report.ok
        assert report.error is None
        assert report.n_threads == 2
        assert report.labels == (1, 3, 5)
        assert report.meshed_labels == (1, 3, 5)
        assert sorted(m.label for m in builder.meshes) == [1, 3, 5]
        assert builder.labels == (1, 3, 5)
        assert report.timing.n_labels == 3

    def test_meshes_are_tagged(self, built, scenario_a_volume):
        builder, _ = built
        for mesh in builder.meshes:
            assert mesh.origin == scenario_a_volume.origin
            assert np.all(mesh.surface.labels == mesh.label)

    def test_plain_export(self, built, tmp_path):
        builder, _ = built
        path = tmp_path / "scene.stl"
        result = builder.export_plain(path)

        assert result.ok
        assert result.n_meshes == 3
        assert result.n_faces == sum(m.n_faces for m in builder.meshes)
        assert path.exists()

    def test_attributed_export(self, built, tmp_path):
        builder, _ = built
        path = tmp_path / "scene.vtp"
        result = builder.export_attributed(path)

        assert result.ok
        surface = read_attributed(path)
        assert set(np.unique(surface.labels)) == {1, 3, 5}
        assert np.all(np.diff(surface.labels) >= 0)
        for mesh in builder.meshes:
            assert (surface.labels == mesh.label).sum() == mesh.n_faces

    def test_export_by_suffix(self, built, tmp_path):
        builder, _ = built
        builder.export(tmp_path / "a.stl")
        builder.export(tmp_path / "a.vtp")
        builder.export(tmp_path / "b.vtp", plain=True)

        assert (tmp_path / "a.stl").read_bytes()[:5] != b"<?xml"
        assert (tmp_path / "a.vtp").read_bytes()[:5] == b"<?xml"
        assert (tmp_path / "b.vtp").read_bytes()[:5] != b"<?xml"


class TestScenarioB:
    """No voxel above 0."""

    def test_no_labels(self, empty_volume, tmp_path):
        builder = MeshBuilder()
        report = builder.build(empty_volume, threads=4)

        assert not report.ok
        assert report.error is ErrorKind.NO_LABELS_FOUND
        assert report.n_threads == 0
        assert builder.meshes == []

        for path in (tmp_path / "out.stl", tmp_path / "out.vtp"):
            result = builder.export(path)
            assert not result.ok
            assert result.error is ErrorKind.EMPTY_COLLECTION
            assert not path.exists()

    def test_export_before_any_build(self, tmp_path):
        result = MeshBuilder().export_attributed(tmp_path / "out.vtp")
        assert result.error is ErrorKind.EMPTY_COLLECTION


class TestInvalidInput:
    """Malformed volumes abort before any thread starts."""

    @pytest.mark.parametrize("volume", [
        None,
        Volume(data=None),
        Volume(data=np.zeros((0, 3, 3))),
        Volume(data=np.zeros((4, 4))),
    ])
    def test_invalid(self, volume):
        report = MeshBuilder().build(volume)
        assert not report.ok
        assert report.error is ErrorKind.INVALID_INPUT
        assert report.message

    def test_flat_mask_aborts_before_workers(self):
        data = np.zeros((10, 10), dtype=np.int16)
        data[2:5, 2:5] = 1

        builder = MeshBuilder()
        report = builder.build(Volume(data=data), threads=1)

        assert not report.ok
        assert report.error is ErrorKind.INVALID_INPUT
        assert report.n_threads == 0
        assert report.failed_labels == ()
        assert builder.meshes == []

    def test_oversized_label_aborts(self):
        data = np.zeros((6, 6, 6), dtype=np.int64)
        data[1:4, 1:4, 1:4] = 3_000_000_000

        report = MeshBuilder().build(Volume(data=data), threads=1)

        assert report.error is ErrorKind.INVALID_INPUT
        assert report.failed_labels == ()


# ============== Containment Tests ==============

class TestContainment:
    """Per-label outcomes never abort the build."""

    def test_empty_label_absent(self, raw_config):
        """2.5 counts as label 2 but thresholds to nothing; label 1 still builds."""
        data = np.zeros((10, 10, 10), dtype=np.float32)
        data[2:6, 2:6, 2:6] = 1.0
        data[8, 8, 8] = 2.5

        builder = MeshBuilder(raw_config)
        report = builder.build(Volume(data=data), threads=2)

        assert report.ok
        assert report.labels == (1, 2)
        assert report.meshed_labels == (1,)
        assert report.empty_labels == (2,)

    def test_failing_label_contained(self, scenario_a_volume, raw_config, monkeypatch):
        builder = MeshBuilder(raw_config)
        original_run = builder.pipeline.run

        def flaky_run(volume, label):
            if label == 3:
                raise RuntimeError("stage exploded")
            return original_run(volume, label)

        monkeypatch.setattr(builder.pipeline, "run", flaky_run)
        report = builder.build(scenario_a_volume, threads=3)

        assert report.ok
        assert report.failed_labels == (3,)
        assert report.meshed_labels == (1, 5)


# ============== Determinism Tests ==============

class TestDeterminism:
    """Same input and params → same per-label meshes for any thread count."""

    def test_thread_count_independent(self, scenario_a_volume, fast_config):
        counts = []
        for threads in (1, 2, 3, 8):
            builder = MeshBuilder(fast_config)
            report = builder.build(scenario_a_volume, threads=threads)
            assert report.n_threads == min(threads, 3)
            counts.append({m.label: (m.n_vertices, m.n_faces) for m in builder.meshes})

        assert all(c == counts[0] for c in counts[1:])

    def test_config_threads_used_by_default(self, scenario_a_volume):
        config = ReconstructionConfig(threads=1, decimation=DecimationParams(enabled=False))
        report = MeshBuilder(config).build(scenario_a_volume)
        assert report.n_threads == 1


# ============== Lifecycle Tests ==============

class TestLifecycle:
    """Cancellation and collection replacement."""

    def test_cancel_before_build(self, scenario_a_volume, raw_config):
        token = CancelToken()
        token.cancel()

        builder = MeshBuilder(raw_config)
        report = builder.build(scenario_a_volume, threads=2, cancel=token)

        assert not report.ok
        assert report.cancelled
        assert report.cancelled_labels == (1, 3, 5)
        assert builder.meshes == []

    def test_cancel_mid_build(self, scenario_a_volume, raw_config, monkeypatch):
        token = CancelToken()
        builder = MeshBuilder(raw_config)
        original_run = builder.pipeline.run

        def run_then_cancel(volume, label):
            token.cancel()
            return original_run(volume, label)

        monkeypatch.setattr(builder.pipeline, "run", run_then_cancel)
        report = builder.build(scenario_a_volume, threads=1, cancel=token)

        assert report.meshed_labels == (1,)
        assert report.cancelled_labels == (3, 5)

    def test_new_build_discards_previous(self, scenario_a_volume, empty_volume, raw_config):
        builder = MeshBuilder(raw_config)
        builder.build(scenario_a_volume, threads=2)
        assert len(builder.meshes) == 3

        builder.build(empty_volume)
        assert builder.meshes == []

    def test_report_to_dict(self, scenario_a_volume, raw_config):
        report = MeshBuilder(raw_config).build(scenario_a_volume, threads=2)
        d = report.to_dict()

        assert d["ok"] is True
        assert d["meshed_labels"] == [1, 3, 5]
        assert d["error"] is None
        assert set(d["timing"]["per_label"]) == {"1", "3", "5"}

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            MeshBuilder(ReconstructionConfig(threads=-1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
