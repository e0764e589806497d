r"""
Polling loop: sample a frame -> classify -> resolve -> publish, forever.

    idle -> loading -> running <-> suspended
                 \          \         /
                  +------> stopped <-+

Runs on one asyncio event loop. The only await inside a tick is the
classifier's predict(); the next tick is scheduled only after the current
one has finished, so predict() is never called concurrently by the loop.

Two guards keep late results off the screen:
  - ownership token: stop() drops the token, so a tick that wakes up from
    predict() after teardown sees it doesn't own the loop and discards.
  - generation: every tick (and every suspend) takes the next generation
    number; the publisher refuses anything older than what it already has.
"""
import asyncio
from enum import Enum
from typing import Optional

from pricescan.orchestrator.errors import LoadError, PredictError
from pricescan.orchestrator.policy import resolve
from pricescan.services.catalog import CONFIDENCE_THRESHOLD, METADATA_PATH, MODEL_PATH

DEFAULT_TICK_INTERVAL_S = 1 / 30


class LoopState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    RUNNING = "running"
    SUSPENDED = "suspended"
    STOPPED = "stopped"


class ScannerLoop:
    def __init__(self, classifier, camera, override_store, publisher, status_store,
                 threshold: float = CONFIDENCE_THRESHOLD,
                 model_location: str = MODEL_PATH,
                 metadata_location: str = METADATA_PATH,
                 tick_interval: float = DEFAULT_TICK_INTERVAL_S):
        self.classifier = classifier
        self.camera = camera
        self.store = override_store
        self.publisher = publisher
        self.status = status_store
        self.threshold = threshold
        self.model_location = model_location
        self.metadata_location = metadata_location
        self.tick_interval = tick_interval

        self._state = LoopState.IDLE
        self._token: Optional[object] = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._last_label: Optional[str] = None
        # pause asked for before the model finished loading
        self._suspend_pending = False

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state in (LoopState.RUNNING, LoopState.SUSPENDED)

    # ── Lifecycle ───────────────────────────────────────────────────────────

    async def start(self, autorun: bool = True) -> bool:
        """Load the classifier, then begin ticking.

        Returns False if the load failed; the loop is then stopped for good
        and status.fatal_error says why. With autorun=False the loop is left
        running but ticks only happen when tick() is called.
        """
        if self._state is not LoopState.IDLE:
            raise RuntimeError(f"loop already started (state={self._state.value})")

        self._state = LoopState.LOADING
        self.status.log("loop: loading classifier")
        try:
            await self.classifier.load(self.model_location, self.metadata_location)
        except LoadError as e:
            self._state = LoopState.STOPPED
            self.status.set_fatal(f"model load error: {e}")
            return False

        if self._state is LoopState.STOPPED:
            # torn down while the model was loading
            self.status.log("loop: stopped during load, not starting")
            return False

        token = object()
        self._token = token
        if self._suspend_pending:
            self._suspend_pending = False
            self._state = LoopState.SUSPENDED
            self.status.log("loop: loaded, starting suspended (pause requested during load)")
        else:
            self._state = LoopState.RUNNING
            self.status.log(f"loop: running threshold={self.threshold} interval={self.tick_interval:.3f}s")
        if autorun:
            self._task = asyncio.create_task(self._run(token))
        return True

    async def stop(self):
        if self._state is LoopState.STOPPED:
            return
        self._state = LoopState.STOPPED
        self._token = None
        self._suspend_pending = False
        task, self._task = self._task, None
        try:
            if task is not None and task is not asyncio.current_task():
                task.cancel()
                outcome, = await asyncio.gather(task, return_exceptions=True)
                if isinstance(outcome, Exception):
                    self.status.log(f"loop: run task ended with {type(outcome).__name__}: {outcome}")
            if self.publisher.current is not None:
                self._publish_empty()
        finally:
            self.camera.release()
            self.status.log("loop: stopped")

    def suspend(self) -> bool:
        """Pause detection (e.g. while the settings form is open).

        Asked for while the model is still loading, the pause is remembered
        and start() comes up suspended instead of running.
        """
        if self._state in (LoopState.IDLE, LoopState.LOADING):
            self._suspend_pending = True
            self.status.log("loop: suspend requested before running")
            return True
        if self._state is not LoopState.RUNNING:
            return False
        self._state = LoopState.SUSPENDED
        self._publish_empty()
        self.status.log("loop: suspended")
        return True

    def resume(self) -> bool:
        if self._state in (LoopState.IDLE, LoopState.LOADING):
            self._suspend_pending = False
            return True
        if self._state is not LoopState.SUSPENDED:
            return False
        self._state = LoopState.RUNNING
        self.status.log("loop: resumed")
        return True

    # ── Ticking ─────────────────────────────────────────────────────────────

    async def _run(self, token: object):
        while self._token is token:
            try:
                await self.tick(token)
            except Exception as e:
                self.status.failed_ticks += 1
                self.status.log(f"loop: tick error {type(e).__name__}: {e}")
            if self._token is not token:
                break
            await asyncio.sleep(self.tick_interval)

    async def tick(self, token: Optional[object] = None) -> bool:
        """Run one resolution tick. Returns True if a result was published."""
        if token is None:
            token = self._token
        if token is None or token is not self._token:
            return False

        generation = self._next_generation()
        self.status.ticks += 1

        if self._state is LoopState.SUSPENDED:
            if self.publisher.current is not None:
                return self.publisher.publish(None, generation)
            return False

        try:
            frame = self.camera.read_frame()
        except Exception as e:
            self.status.log(f"loop: camera error {type(e).__name__}: {e}")
            frame = None
        if frame is None:
            self.status.skipped_ticks += 1
            return False

        try:
            predictions = await self.classifier.predict(frame)
        except PredictError as e:
            self.status.failed_ticks += 1
            self.status.log(f"loop: predict failed gen={generation}: {e}")
            predictions = []
        except Exception as e:
            self.status.failed_ticks += 1
            self.status.log(f"loop: predict error gen={generation} {type(e).__name__}: {e}")
            predictions = []

        if token is not self._token:
            self.status.log(f"loop: discarding gen={generation}, loop torn down during predict")
            return False
        if self._state is not LoopState.RUNNING:
            return False

        try:
            result = resolve(predictions, self.store.snapshot(), self.threshold)
        except Exception as e:
            # malformed classifier output counts as "no predictions this tick"
            self.status.failed_ticks += 1
            self.status.log(f"loop: resolve error gen={generation} {type(e).__name__}: {e}")
            result = None
        published = self.publisher.publish(result, generation)
        if published:
            label = result.label if result is not None else None
            if label != self._last_label:
                if result is None:
                    self.status.log("loop: nothing detected")
                else:
                    self.status.log(
                        f"loop: detected {result.label} conf={result.confidence:.2f}"
                        f" price={result.record.price}" + ("" if result.mapped else " (unmapped)")
                    )
                self._last_label = label
        return published

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _publish_empty(self):
        self._last_label = None
        self.publisher.publish(None, self._next_generation())
