"""
OpenCV webcam frame source.
CAMERA_INDEX env var (default 0) selects the webcam device.
"""
import os
import cv2
from pricescan.adapters.camera.base import CameraAdapter

class CV2Camera(CameraAdapter):
    def __init__(self, status_store, index: int | None = None):
        self.status = status_store
        self._index = index if index is not None else int(os.getenv("CAMERA_INDEX", "0"))
        self._cap = None
        self._warned = False

    def _open(self):
        if self._cap is None or not self._cap.isOpened():
            self._cap = cv2.VideoCapture(self._index)
            if not self._cap.isOpened() and not self._warned:
                # logged once; the loop keeps polling until the device shows up
                self.status.log(f"cv2_camera: failed to open device {self._index}")
                self._warned = True

    def read_frame(self):
        self._open()
        if self._cap is None or not self._cap.isOpened():
            return None
        ret, frame = self._cap.read()
        if not ret or frame is None:
            return None
        self._warned = False
        return frame

    def release(self):
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        self._cap = None
