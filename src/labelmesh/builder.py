"""
Mask → mesh collection builder.

MeshBuilder is the public entry point: build() reconstructs every label of
a volume on a worker pool, export_plain() / export_attributed() write the
result. Failures come back as BuildReport / ExportResult status objects.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import ReconstructionConfig, DEFAULT_CONFIG
from .errors import ErrorKind, LabelMeshError
from .events import BuildEvent, EventKind, EventSink, TimingSummary
from .export import ExportResult, export_attributed, export_plain
from .labels import extract_labels
from .pipeline import GeometryPipeline
from .scheduler import CancelToken, resolve_thread_count, run_workers
from .store import MeshObject, ResultStore
from .volume import Volume

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class BuildReport:
    """Status and diagnostics of one build call."""
    ok: bool
    labels: Tuple[int, ...] = ()
    meshed_labels: Tuple[int, ...] = ()
    empty_labels: Tuple[int, ...] = ()
    failed_labels: Tuple[int, ...] = ()
    cancelled_labels: Tuple[int, ...] = ()
    n_threads: int = 0
    timing: TimingSummary = field(default_factory=TimingSummary)
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def cancelled(self) -> bool:
        return bool(self.cancelled_labels)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "labels": list(self.labels),
            "meshed_labels": list(self.meshed_labels),
            "empty_labels": list(self.empty_labels),
            "failed_labels": list(self.failed_labels),
            "cancelled_labels": list(self.cancelled_labels),
            "n_threads": self.n_threads,
            "timing": self.timing.to_dict(),
            "error": self.error.value if self.error else None,
            "message": self.message
        }


@dataclass
class BuildContext:
    """
    State shared by the workers of one build.

    The store and the event sink each have their own lock.
    """
    volume: Volume
    pipeline: GeometryPipeline
    store: ResultStore = field(default_factory=ResultStore)
    events: EventSink = field(default_factory=EventSink)

    def process(self, label: int) -> None:
        """Worker task: reconstruct one label and record the outcome."""
        self.events.emit(BuildEvent(EventKind.STARTED, label))
        start = time.perf_counter()
        try:
            result = self.pipeline.run(self.volume, label)
        except Exception as e:
            self.events.emit(BuildEvent(
                EventKind.FAILED,
                label,
                elapsed=time.perf_counter() - start,
                message=f"{type(e).__name__}: {e}"
            ))
            raise

        if result.mesh is not None:
            self.store.append(result.mesh)
        self.events.emit(BuildEvent(
            result.status,
            label,
            elapsed=result.elapsed,
            n_vertices=result.n_vertices,
            n_faces=result.n_faces,
            message=result.message
        ))

    def on_error(self, label: int, exc: Exception) -> None:
        logger.debug(f"Label {label} traceback", exc_info=exc)

    def labels_of(self, kind: EventKind) -> Tuple[int, ...]:
        return tuple(sorted(e.label for e in self.events.of_kind(kind)))


class MeshBuilder:
    """
    Builds one tagged surface per positive label of a mask volume.

    A new build() discards the previous collection. Exports wait for a
    running build to finish.
    """

    def __init__(self, config: Optional[ReconstructionConfig] = None):
        self.config = (config or DEFAULT_CONFIG).validate()
        self.pipeline = GeometryPipeline(self.config)
        self._store = ResultStore()
        self._store.freeze()
        self._lock = threading.Lock()
        self.last_report: Optional[BuildReport] = None

    @property
    def meshes(self) -> List[MeshObject]:
        """Meshes of the last build, in completion order."""
        with self._lock:
            return list(self._store)

    @property
    def labels(self) -> Tuple[int, ...]:
        with self._lock:
            return self._store.labels

    def build(
        self,
        volume: Optional[Volume],
        threads: Optional[int] = None,
        cancel: Optional[CancelToken] = None
    ) -> BuildReport:
        """
        Reconstruct every positive label of `volume`.

        Args:
            volume: Labeled mask (read only)
            threads: Worker count override; None uses config.threads, 0 = automatic
            cancel: Optional token to stop claiming new labels

        Returns:
            BuildReport (ok=False with error=INVALID_INPUT / NO_LABELS_FOUND
            when the build short-circuits, or when it was cancelled)
        """
        with self._lock:
            context_store = ResultStore()
            self._store = context_store

            try:
                labels = extract_labels(volume)
            except LabelMeshError as e:
                logger.error(f"Build aborted: {e}")
                context_store.freeze()
                report = BuildReport(ok=False, error=e.kind, message=str(e))
                self.last_report = report
                return report

            hint = self.config.threads if threads is None else threads
            n_threads = resolve_thread_count(hint, len(labels))
            context = BuildContext(volume=volume, pipeline=self.pipeline, store=context_store)

            logger.info(f"Reconstructing {len(labels)} labels on {n_threads} threads")
            global_start = time.perf_counter()
            pool = run_workers(labels, context.process, n_threads, cancel, context.on_error)
            wall_time = time.perf_counter() - global_start
            context_store.freeze()

            for label in pool.unclaimed:
                context.events.emit(BuildEvent(EventKind.CANCELLED, label))

            timing = TimingSummary.from_events(context.events.events, wall_time)
            logger.info(f"Total {len(context_store)} labels processed in {wall_time:.3f} s")

            cancelled = tuple(sorted(pool.unclaimed))
            message = ""
            if cancelled:
                message = f"Build cancelled; {len(cancelled)} labels not processed"
                logger.warning(message)

            report = BuildReport(
                ok=not cancelled,
                labels=labels,
                meshed_labels=context_store.labels,
                empty_labels=context.labels_of(EventKind.EMPTY),
                failed_labels=context.labels_of(EventKind.FAILED),
                cancelled_labels=cancelled,
                n_threads=n_threads,
                timing=timing,
                message=message
            )
            self.last_report = report
            return report

    def _export(self, writer, path: PathLike, **kwargs) -> ExportResult:
        with self._lock:
            meshes = self._store.sorted_by_label()
        try:
            return writer(meshes, path, **kwargs)
        except LabelMeshError as e:
            logger.error(str(e))
            return ExportResult(ok=False, path=Path(path), error=e.kind, message=str(e))

    def export_plain(self, path: PathLike) -> ExportResult:
        """Combined binary STL without labels."""
        return self._export(export_plain, path)

    def export_attributed(self, path: PathLike) -> ExportResult:
        """Combined binary VTP with the per-triangle label array."""
        return self._export(export_attributed, path, label_array_name=self.config.label_array_name)

    def export(self, path: PathLike, plain: Optional[bool] = None) -> ExportResult:
        """Export by suffix: .stl → plain, anything else → attributed."""
        if plain is None:
            plain = Path(path).suffix.lower() == ".stl"
        return self.export_plain(path) if plain else self.export_attributed(path)
