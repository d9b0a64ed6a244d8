"""Frame processing pipeline: a single worker consuming face crops."""

import itertools
import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .constants import MATCH_THRESHOLD, PipelineSettings
from .errors import FaceNetError
from .extractor import EmbeddingExtractor
from .gallery import FaceGallery
from .matcher import FaceMatcher
from .types import FaceRegion, MatchResult, PixelBuffer

logger = logging.getLogger(__name__)


@dataclass
class RecognitionEvent:
    """Outcome of processing one frame's face crop."""

    frame_number: int
    timestamp: float
    result: Optional[MatchResult] = None
    inference_time_ms: Optional[float] = None
    face_rect: Optional[FaceRegion] = None
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def is_match(self) -> bool:
        return self.result is not None and self.result.is_match

    @property
    def label(self) -> str:
        """Get the identity label ("Unknown" when nothing matched)."""
        return self.result.display_label if self.result else "Unknown"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = {
            "frame_number": self.frame_number,
            "timestamp": self.timestamp,
            "inference_time_ms": self.inference_time_ms,
            "error": str(self.error) if self.error else None,
        }
        if self.result:
            data.update(self.result.to_dict())
        return data


@dataclass
class _WorkItem:
    frame_number: int
    buffer: PixelBuffer
    face_rect: Optional[FaceRegion] = None


class RecognitionPipeline:
    """Extract and match face crops on a dedicated worker thread.

    Frames may be submitted from any thread. A single worker drains the
    queue, so the model is never invoked concurrently. No ordering is
    promised against frames handled elsewhere (for example through
    :meth:`process` on another thread); use ``frame_number`` to reorder.
    """

    def __init__(
        self,
        extractor: EmbeddingExtractor,
        gallery: FaceGallery,
        threshold: float = MATCH_THRESHOLD,
        on_result: Optional[Callable[[RecognitionEvent], None]] = None,
        settings: Optional[PipelineSettings] = None,
    ):
        """Initialize the pipeline.

        Args:
            extractor: Embedding extractor bound to one model instance
            gallery: Gallery to match against (owned by the caller)
            threshold: Match threshold on [-1, 1]
            on_result: Callback for every processed frame, called on the worker
            settings: Queue settings (defaults if None)
        """
        self.extractor = extractor
        self.gallery = gallery
        self.matcher = FaceMatcher(threshold)
        self.settings = settings or PipelineSettings()

        self._on_result = on_result
        self._queue: "queue.Queue[_WorkItem]" = queue.Queue(maxsize=self.settings.queue_size)
        self._frame_counter = itertools.count(1)
        self._running = False
        self._worker: Optional[threading.Thread] = None
        self._stats_lock = threading.Lock()
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> dict:
        return {
            "frames_processed": 0,
            "frames_dropped": 0,
            "matches": 0,
            "failures": 0,
            "start_time": None,
        }

    def process(
        self,
        buffer: PixelBuffer,
        frame_number: Optional[int] = None,
        face_rect: Optional[FaceRegion] = None,
    ) -> RecognitionEvent:
        """Extract and match one face crop on the calling thread.

        Extraction failures are logged and returned as a failed event
        rather than raised.
        """
        if frame_number is None:
            frame_number = next(self._frame_counter)

        event = RecognitionEvent(
            frame_number=frame_number,
            timestamp=time.time(),
            face_rect=face_rect,
        )

        try:
            extracted = self.extractor.extract(buffer)
            event.inference_time_ms = extracted.inference_time_ms
            event.result = self.matcher.match(
                extracted.embedding.embedding, self.gallery
            )
        except FaceNetError as e:
            logger.warning(f"Frame {frame_number} failed: {e}")
            event.error = e

        self._record(event)
        return event

    def _record(self, event: RecognitionEvent):
        with self._stats_lock:
            self._stats["frames_processed"] += 1
            if event.failed:
                self._stats["failures"] += 1
            elif event.is_match:
                self._stats["matches"] += 1

    def submit(
        self,
        buffer: PixelBuffer,
        face_rect: Optional[FaceRegion] = None,
    ) -> Optional[int]:
        """Queue a face crop for background processing.

        Args:
            buffer: Face crop (copied, the caller may reuse its buffer)
            face_rect: Where the crop came from, passed through to the event

        Returns:
            Frame number assigned to the crop, or None if the queue was full
            and the frame was dropped
        """
        frame_number = next(self._frame_counter)
        item = _WorkItem(
            frame_number=frame_number,
            buffer=PixelBuffer(buffer.data.copy(), buffer.pixel_format),
            face_rect=face_rect,
        )
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            with self._stats_lock:
                self._stats["frames_dropped"] += 1
            logger.debug(f"Queue full, dropped frame {frame_number}")
            return None
        return frame_number

    def start(self):
        """Start background processing."""
        if self._running:
            return

        self._running = True
        with self._stats_lock:
            self._stats["start_time"] = time.time()

        self._worker = threading.Thread(
            target=self._processing_loop,
            name="facenet-worker",
            daemon=True,
        )
        self._worker.start()
        logger.info("Recognition pipeline started")

    def stop(self, drain: bool = True):
        """Stop background processing.

        Args:
            drain: Process frames already queued before stopping
        """
        if drain and self._running and self._worker is not None and self._worker.is_alive():
            self._queue.join()

        self._running = False

        if self._worker:
            self._worker.join(timeout=2.0)
            self._worker = None

        logger.info("Recognition pipeline stopped")

    def _processing_loop(self):
        """Background processing loop."""
        while self._running:
            try:
                item = self._queue.get(timeout=self.settings.poll_interval)
            except queue.Empty:
                continue

            try:
                try:
                    event = self.process(item.buffer, item.frame_number, item.face_rect)
                except Exception as e:
                    logger.error(f"Frame {item.frame_number} raised unexpectedly: {e!r}")
                    event = RecognitionEvent(
                        frame_number=item.frame_number,
                        timestamp=time.time(),
                        face_rect=item.face_rect,
                        error=e,
                    )
                    self._record(event)
                self._dispatch(event)
            finally:
                self._queue.task_done()

    def _dispatch(self, event: RecognitionEvent):
        if not self._on_result:
            return
        try:
            self._on_result(event)
        except Exception as e:
            logger.error(f"Result callback error: {e}")

    def get_stats(self) -> dict:
        """Get pipeline statistics."""
        with self._stats_lock:
            stats = self._stats.copy()

        if stats["start_time"]:
            runtime = time.time() - stats["start_time"]
            stats["runtime_seconds"] = runtime
            stats["fps"] = stats["frames_processed"] / runtime if runtime > 0 else 0

        return stats

    def reset_stats(self):
        """Reset pipeline statistics."""
        with self._stats_lock:
            self._stats = self._empty_stats()
            if self._running:
                self._stats["start_time"] = time.time()

    @property
    def is_running(self) -> bool:
        """Check if pipeline is running."""
        return self._running

    @property
    def pending(self) -> int:
        """Number of frames waiting for the worker."""
        return self._queue.qsize()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
