import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from pricescan.adapters.camera.base import CameraAdapter
from pricescan.adapters.classifier.base import ClassifierAdapter
from pricescan.orchestrator import errors
from pricescan.orchestrator.errors import PersistError
from pricescan.orchestrator.contracts import unmapped_fallback
from pricescan.orchestrator.state_machine import LoopState, ScannerLoop
from pricescan.services.catalog import DEFAULT_CATALOG
from pricescan.services.config import ScannerConfig
from pricescan.services.models import (
    LabelsResponse, LoopControlResponse, MappingEntryOut, PriceRecordIn, PriceRecordOut,
    ResolvedOut, SetOverrideResponse, StatusResponse,
)
from pricescan.services.override_store import OverrideStore
from pricescan.services.publisher import ResultPublisher
from pricescan.services.status_store import StatusStore


def build_classifier(cfg: ScannerConfig, status: StatusStore) -> ClassifierAdapter:
    # Classifier adapter: CLASSIFIER_ADAPTER env var, cv2 | mock (default: cv2)
    if cfg.classifier_adapter == "mock":
        from pricescan.adapters.classifier.mock_classifier import MockClassifier
        return MockClassifier(status, labels=list(DEFAULT_CATALOG))
    if cfg.classifier_adapter != "cv2":
        status.log(f"classifier: unknown adapter '{cfg.classifier_adapter}', using cv2")
    from pricescan.adapters.classifier.cv2_dnn_classifier import Cv2DnnClassifier
    return Cv2DnnClassifier(status)


def build_camera(cfg: ScannerConfig, status: StatusStore) -> CameraAdapter:
    if cfg.camera_adapter == "mock":
        from pricescan.adapters.camera.mock_camera import MockCamera
        return MockCamera(status, frames_dir=cfg.mock_frames_dir)
    from pricescan.adapters.camera.cv2_camera import CV2Camera
    return CV2Camera(status, index=cfg.camera_index)


def create_app(cfg: Optional[ScannerConfig] = None,
               classifier: Optional[ClassifierAdapter] = None,
               camera: Optional[CameraAdapter] = None,
               status: Optional[StatusStore] = None) -> FastAPI:
    cfg = cfg or ScannerConfig.from_env()
    status = status or StatusStore()
    for w in cfg.warnings:
        status.log(f"config: {w}")

    classifier = classifier or build_classifier(cfg, status)
    camera = camera or build_camera(cfg, status)
    status.log(f"classifier adapter: {type(classifier).__name__}")
    status.log(f"camera adapter: {type(camera).__name__}")

    store = OverrideStore(cfg.overrides_path, DEFAULT_CATALOG, status)
    publisher = ResultPublisher(status)
    loop = ScannerLoop(
        classifier=classifier,
        camera=camera,
        override_store=store,
        publisher=publisher,
        status_store=status,
        threshold=cfg.threshold,
        model_location=cfg.model_path,
        metadata_location=cfg.metadata_path,
        tick_interval=cfg.tick_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.load()
        # load in the background so /status can report "loading" meanwhile
        starter = asyncio.create_task(loop.start())
        try:
            yield
        finally:
            await loop.stop()
            if not starter.done():
                starter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await starter

    app = FastAPI(title="pricescan", lifespan=lifespan)
    app.state.config = cfg
    app.state.status = status
    app.state.store = store
    app.state.publisher = publisher
    app.state.loop = loop
    app.state.classifier = classifier

    def known_labels() -> list[str]:
        labels = classifier.list_labels()
        return labels if labels else list(DEFAULT_CATALOG)

    def mapping_entry(label: str) -> MappingEntryOut:
        rec = store.get_effective(label) or unmapped_fallback(label)
        return MappingEntryOut(label=label, source=store.source_of(label), record=PriceRecordOut.from_record(rec))

    def control_response(ok: bool) -> LoopControlResponse:
        code = None
        if not ok:
            code = errors.ERR_STOPPED if loop.state is LoopState.STOPPED else errors.ERR_NOT_RUNNING
        return LoopControlResponse(ok=ok, state=loop.state.value, error_code=code)

    @app.get("/status", response_model=StatusResponse)
    async def get_status():
        return StatusResponse(
            state=loop.state.value,
            ready=loop.ready,
            fatal_error=status.fatal_error,
            error_code=errors.ERR_LOAD if status.fatal_error else None,
            persist_error=status.persist_error,
            result=ResolvedOut.from_result(publisher.current, publisher.generation),
            ticks=status.ticks,
            skipped_ticks=status.skipped_ticks,
            failed_ticks=status.failed_ticks,
            logs=status.logs,
        )

    @app.get("/result", response_model=ResolvedOut)
    async def get_result():
        return ResolvedOut.from_result(publisher.current, publisher.generation)

    @app.websocket("/ws")
    async def ws_results(websocket: WebSocket):
        """Push every publish, "nothing detected" included. Slow clients only get the latest."""
        await websocket.accept()
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)

        def push(result, generation):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(ResolvedOut.from_result(result, generation))

        async def pump():
            while True:
                out = await queue.get()
                await websocket.send_json(out.model_dump())

        push(publisher.current, publisher.generation)
        unsubscribe = publisher.subscribe(push)
        sender = asyncio.create_task(pump())
        try:
            # nothing is expected from the client; this only waits for it to go away
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            status.log("ws: client disconnected")
        finally:
            unsubscribe()
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)

    @app.get("/labels", response_model=LabelsResponse)
    async def get_labels():
        return LabelsResponse(ready=classifier.ready, labels=classifier.list_labels())

    @app.get("/mapping", response_model=list[MappingEntryOut])
    async def get_mapping():
        labels = known_labels()
        # overrides for labels the current model doesn't know are still shown
        extra = [l for l in store.overrides() if l not in labels]
        return [mapping_entry(label) for label in labels + extra]

    @app.get("/mapping/{label:path}", response_model=MappingEntryOut)
    async def get_effective(label: str):
        return mapping_entry(label)

    @app.put("/mapping/{label:path}", response_model=SetOverrideResponse)
    async def set_override(label: str, req: PriceRecordIn):
        if label not in known_labels() and label not in store.defaults:
            status.log(f"OVERRIDE rejected: unknown label '{label}'")
            return SetOverrideResponse(ok=False, persisted=False, label=label,
                                       error_code=errors.ERR_UNKNOWN_LABEL, error="label not known to the classifier")
        record = req.to_record()
        out = PriceRecordOut.from_record(record)
        try:
            # file rewrite + fsync runs off the event loop
            await asyncio.to_thread(store.set_override, label, record)
        except PersistError as e:
            # edit stays live for this session; client shows a retry hint
            return SetOverrideResponse(ok=True, persisted=False, label=label, record=out,
                                       error_code=errors.ERR_PERSIST, error=str(e))
        return SetOverrideResponse(ok=True, persisted=True, label=label, record=out)

    @app.delete("/mapping/{label:path}", response_model=SetOverrideResponse)
    async def clear_override(label: str):
        try:
            cleared = await asyncio.to_thread(store.clear_override, label)
        except PersistError as e:
            return SetOverrideResponse(ok=True, persisted=False, label=label,
                                       error_code=errors.ERR_PERSIST, error=str(e))
        rec = store.get_effective(label)
        return SetOverrideResponse(ok=cleared, persisted=cleared, label=label,
                                   record=PriceRecordOut.from_record(rec) if rec else None)

    @app.post("/pause", response_model=LoopControlResponse)
    async def pause():
        status.log("PAUSE")
        return control_response(loop.suspend())

    @app.post("/resume", response_model=LoopControlResponse)
    async def resume():
        status.log("RESUME")
        return control_response(loop.resume())

    @app.post("/stop", response_model=LoopControlResponse)
    async def stop():
        status.log("STOP")
        await loop.stop()
        return LoopControlResponse(ok=True, state=loop.state.value)

    @app.get("/health")
    async def health():
        checks = {
            "api": True,
            "classifier_adapter": type(classifier).__name__,
            "camera_adapter": type(camera).__name__,
            "classifier_ready": classifier.ready,
            "state": loop.state.value,
            "overrides": len(store.overrides()),
        }
        checks["all_ok"] = loop.ready and status.fatal_error is None
        if status.fatal_error:
            checks["error_code"] = errors.ERR_LOAD
        return checks

    return app
