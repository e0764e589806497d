"""Mock frame source: cycles through still images in a directory, or serves a blank frame."""
import itertools
from pathlib import Path

import cv2
import numpy as np

from pricescan.adapters.camera.base import CameraAdapter

BLANK_SHAPE = (480, 640, 3)

class MockCamera(CameraAdapter):
    def __init__(self, status_store, frames_dir: str | Path | None = None, available: bool = True):
        self.status = status_store
        # flip to False to simulate a video element that isn't ready yet
        self.available = available
        self._frames = []
        if frames_dir is not None:
            self._frames = sorted(Path(frames_dir).glob("*.jpg")) + sorted(Path(frames_dir).glob("*.png"))
            if not self._frames:
                self.status.log(f"mock_camera: no images in {frames_dir}, serving blank frames")
        self._cycle = itertools.cycle(self._frames) if self._frames else None

    def read_frame(self):
        if not self.available:
            return None
        if self._cycle is None:
            return np.zeros(BLANK_SHAPE, dtype=np.uint8)
        path = next(self._cycle)
        frame = cv2.imread(str(path))
        if frame is None:
            self.status.log(f"mock_camera: failed to read {path.name}")
        return frame
