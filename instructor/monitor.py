# instructor/monitor.py
"""
Screen monitoring session.

Every MONITOR_INTERVAL seconds one cycle runs on a background worker:
- capture the screen and locate faces
- classify each face with both emotion models
- prepend one LogRecord per face and feed Needs Help results to the alert

A second timer flips the alert flash every FLASH_INTERVAL seconds.
A cycle never overlaps another one (ticks arriving mid-cycle are dropped),
and results from a cycle that outlives its session are discarded.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from instructor.alert import AlertStateMachine
from instructor.assets import ensure_cascade_asset, ensure_model_files
from instructor.capture import ScreenCapture
from instructor.config import Settings
from instructor.emotion import EmotionClassifier
from instructor.errors import (
    CaptureError,
    CycleFatalError,
    DetectionError,
    ResourceReleaseError,
    StartupResourceError,
)
from instructor.faces import FaceLocator
from instructor.logbook import LogBook
from instructor.models import EmotionVerdict, LogRecord, StatusSnapshot

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _now() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def _close(resource) -> None:
    try:
        resource.close()
    except Exception as e:
        raise ResourceReleaseError(f"Failed to release {type(resource).__name__}: {e}") from e


def load_resources(settings: Settings) -> Tuple[FaceLocator, EmotionClassifier]:
    """Provision the cascade, check both model files and load everything."""
    cascade_path = ensure_cascade_asset(settings)
    locator = FaceLocator.from_settings(cascade_path, settings)
    try:
        primary, secondary = ensure_model_files(settings)
        classifier = EmotionClassifier.from_paths(primary, secondary)
    except Exception:
        locator.close()
        raise
    return locator, classifier


# -----------------------------------------------------------------------------
# Periodic background ticks
# -----------------------------------------------------------------------------
class PeriodicTimer:
    """Calls `callback` every `interval` seconds on a daemon thread until stopped."""
    def __init__(self, interval: float, callback: Callable[[], object], name: str = "timer"):
        self.interval = float(interval)
        self.callback = callback
        self.name = name
        self._thread: Optional[threading.Thread] = None
        self._halt: Optional[threading.Event] = None

    @property
    def running(self) -> bool:
        return self._thread is not None

    def start(self):
        if self._thread is not None:
            return
        halt = threading.Event()
        self._halt = halt
        self._thread = threading.Thread(target=self._loop, args=(halt,), name=self.name, daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread is None:
            return
        self._halt.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval + 1.0)
        self._thread = None
        self._halt = None

    def _loop(self, halt: threading.Event):
        while not halt.wait(self.interval):
            try:
                self.callback()
            except Exception:
                logger.exception(f"[timer] {self.name} callback failed")


# -----------------------------------------------------------------------------
# MonitoringSession: Idle -> Initializing -> Active -> Idle
# -----------------------------------------------------------------------------
class MonitoringSession:
    """Owns models, timers, the operator log and the alert for one monitor process."""
    def __init__(self,
                 settings: Settings,
                 capture=None,
                 loader: Callable[[Settings], Tuple[FaceLocator, EmotionClassifier]] = load_resources):
        self.s = settings
        self._capture = capture if capture is not None else ScreenCapture(settings.MONITOR_INDEX)
        self._loader = loader
        self._lock = threading.RLock()

        self.state = "Idle"
        self.status_text = "Stopped"
        self.face_count = 0
        self.detailed_logging = False
        self.log = LogBook(settings.LOG_CAPACITY)
        self.alert = AlertStateMachine(settings.NEEDS_HELP_THRESHOLD)

        self._locator: Optional[FaceLocator] = None
        self._classifier: Optional[EmotionClassifier] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._processing = False
        self._first_cycle_pending = False
        self._generation = 0

        self._monitor_timer = PeriodicTimer(settings.MONITOR_INTERVAL, self.trigger, name="monitor-tick")
        self._flash_timer = PeriodicTimer(settings.FLASH_INTERVAL, self._flash_tick, name="alert-flash")

    # ---- lifecycle ----
    def start(self, run_first_cycle: bool = True) -> bool:
        """
        Load resources and begin monitoring.

        Returns False if the session is not Idle.

        Raises:
            StartupResourceError: an asset or model could not be acquired; the
            session is back in Idle and no timer was started.
        """
        with self._lock:
            if self.state != "Idle":
                return False
            self.state = "Initializing"
            self.status_text = "Initializing"
            self.face_count = 0
            self.detailed_logging = False
            self.alert.reset()

        logger.info("[monitor] initializing")
        try:
            locator, classifier = self._loader(self.s)
        except Exception as e:
            with self._lock:
                self.state = "Idle"
                self.status_text = "Stopped"
            logger.error(f"[monitor] startup failed: {e}")
            if isinstance(e, StartupResourceError):
                raise
            raise StartupResourceError(f"Error starting monitoring: {e}") from e

        with self._lock:
            self._generation += 1
            self._locator = locator
            self._classifier = classifier
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="monitor-cycle")
            self.state = "Active"
            self.status_text = "Monitoring"
            self._first_cycle_pending = run_first_cycle
            self.log.insert(LogRecord(
                timestamp=_now(),
                face_index=0,
                primary_label="SYSTEM",
                secondary_label="SYSTEM",
                model_used="N/A",
                fused_label="Monitoring started successfully",
                classification="INFO",
            ))

        self._monitor_timer.start()
        self._flash_timer.start()
        logger.info(f"[monitor] active interval={self.s.MONITOR_INTERVAL}s")
        if run_first_cycle:
            self.trigger()
        return True

    def stop(self) -> bool:
        """
        Stop timers, silence the alert and release models.

        An in-flight cycle is not interrupted; its results are discarded.
        """
        with self._lock:
            if self.state != "Active":
                return False
            self.state = "Idle"
            self.status_text = "Stopped"
            self.face_count = 0
            self._generation += 1
            locator, classifier = self._locator, self._classifier
            executor = self._executor
            self._locator = self._classifier = self._executor = None
            self._first_cycle_pending = False
            self.alert.acknowledge()

        self._monitor_timer.stop()
        self._flash_timer.stop()
        if executor is not None:
            executor.shutdown(wait=False)
        self._release(classifier, locator)
        logger.info("[monitor] stopped")
        return True

    def shutdown(self):
        """Host shutdown hook."""
        self.stop()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()

    def _release(self, *resources):
        """Best-effort close of model/detector handles."""
        for res in resources:
            if res is None:
                continue
            try:
                _close(res)
            except ResourceReleaseError as e:
                logger.warning(f"[monitor] ignoring: {e}")

    # ---- operator commands ----
    def clear_log(self):
        with self._lock:
            self.log.clear()
            self.alert.reset()

    def acknowledge_alert(self):
        with self._lock:
            self.alert.acknowledge()

    def toggle_detailed_logging(self) -> bool:
        with self._lock:
            self.detailed_logging = not self.detailed_logging
            return self.detailed_logging

    def status(self) -> StatusSnapshot:
        with self._lock:
            return StatusSnapshot(
                state=self.state,
                status=self.status_text,
                face_count=self.face_count,
                alert_active=self.alert.active,
                flash_on=self.alert.flash_on,
                needs_help_count=self.alert.needs_help_count,
                detailed_logging=self.detailed_logging,
                log_size=len(self.log),
            )

    def records(self, limit: Optional[int] = None) -> List[LogRecord]:
        with self._lock:
            return self.log.snapshot(limit)

    # ---- cycle scheduling ----
    def _claim(self):
        """Single-flight guard: returns the cycle context, or None if the tick must be skipped."""
        with self._lock:
            if self.state != "Active":
                return None
            if self._processing:
                logger.debug("[monitor] previous cycle still running; skipping tick")
                return None
            self._processing = True
            self._first_cycle_pending = False
            self.status_text = "Processing"
            return self._generation, self._locator, self._classifier

    def trigger(self) -> bool:
        """Timer entry point: hand one cycle to the background worker."""
        claim = self._claim()
        if claim is None:
            return False
        with self._lock:
            executor = self._executor
            if executor is None:
                self._processing = False
                return False
        try:
            executor.submit(self._execute, *claim)
        except RuntimeError:
            # executor shut down by a concurrent stop()
            with self._lock:
                self._processing = False
            return False
        return True

    def run_cycle(self) -> bool:
        """Run one cycle on the calling thread, honouring the single-flight guard."""
        claim = self._claim()
        if claim is None:
            return False
        self._execute(*claim)
        return True

    def _execute(self, generation: int, locator: FaceLocator, classifier: EmotionClassifier):
        try:
            self._cycle(generation, locator, classifier)
        except Exception as e:
            fatal = CycleFatalError(str(e) or type(e).__name__)
            logger.exception(f"[monitor] critical error during monitoring: {fatal}")
            self._apply(generation, [self._error_record(0, str(fatal), fatal=True)], status="Error")
        finally:
            with self._lock:
                self._processing = False
                # a restart while this cycle ran could not start its first cycle
                rerun = self._first_cycle_pending and self.state == "Active"
            if rerun:
                logger.debug("[monitor] running deferred first cycle")
                self.trigger()

    def _cycle(self, generation: int, locator: FaceLocator, classifier: EmotionClassifier):
        # Unit 1: capture + detect
        try:
            frame = self._capture.capture_frame()
            faces = locator.locate(frame)
            del frame
        except (CaptureError, DetectionError) as e:
            logger.warning(f"[monitor] cycle error: {e}")
            faces = []
            if not self._apply(generation, [self._error_record(0, str(e))]):
                return
        timestamp = _now()

        if not faces:
            self._apply(generation, [LogRecord(
                timestamp=timestamp,
                face_index=0,
                primary_label="N/A",
                secondary_label="N/A",
                model_used="N/A",
                fused_label="No faces detected",
                classification="N/A",
            )], face_count=0, status="Monitoring")
            return

        if not self._apply(generation, [], face_count=len(faces)):
            return
        logger.debug(f"[monitor] classifying {len(faces)} face(s)")

        # Unit 2: classify each face independently
        records: List[LogRecord] = []
        for idx, face in enumerate(faces, start=1):
            try:
                verdict = classifier.classify(face.pixel_data)
            except Exception as e:
                logger.warning(f"[monitor] face {idx} classification failed: {e}")
                records.append(self._error_record(idx, f"Error: {e}", timestamp=timestamp))
                continue
            records.append(self._face_record(timestamp, idx, verdict))

        self._apply(generation, records, status="Monitoring")

    def _apply(self, generation: int, records: List[LogRecord],
               face_count: Optional[int] = None, status: Optional[str] = None) -> bool:
        """Commit cycle results unless the session that started the cycle is gone."""
        with self._lock:
            if generation != self._generation or self.state != "Active":
                logger.debug(f"[monitor] discarding {len(records)} record(s) from a stopped session")
                return False
            self.log.extend(records)
            for r in records:
                self.alert.record(r.classification)
            if face_count is not None:
                self.face_count = face_count
            if status is not None:
                self.status_text = status
            return True

    def _flash_tick(self):
        with self._lock:
            self.alert.tick()

    # ---- record builders ----
    def _face_record(self, timestamp: str, idx: int, v: EmotionVerdict) -> LogRecord:
        if not self.detailed_logging:
            return LogRecord(timestamp=timestamp, face_index=idx, classification=v.classification)
        return LogRecord(
            timestamp=timestamp,
            face_index=idx,
            primary_label=v.primary_label,
            secondary_label=v.secondary_label,
            model_used=v.model_used,
            fused_label=v.fused_label,
            classification=v.classification,
        )

    @staticmethod
    def _error_record(idx: int, message: str, fatal: bool = False, timestamp: Optional[str] = None) -> LogRecord:
        tag = "FATAL ERROR" if fatal else "ERROR"
        return LogRecord(
            timestamp=timestamp or _now(),
            face_index=idx,
            primary_label=tag,
            secondary_label=tag,
            model_used="N/A",
            fused_label=message,
            classification="ERROR",
        )
