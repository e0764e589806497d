"""Tests for the frame sources."""

import cv2
import numpy as np

from pricescan.adapters.camera.cv2_camera import CV2Camera
from pricescan.adapters.camera.mock_camera import BLANK_SHAPE, MockCamera


def test_mock_blank_frame(status):
    frame = MockCamera(status).read_frame()
    assert frame.shape == BLANK_SHAPE
    assert frame.dtype == np.uint8


def test_mock_not_available(status):
    cam = MockCamera(status, available=False)
    assert cam.read_frame() is None


def test_mock_cycles_through_stills(status, tmp_path):
    for i, value in enumerate((10, 200)):
        cv2.imwrite(str(tmp_path / f"{i}.png"), np.full((8, 8, 3), value, dtype=np.uint8))
    cam = MockCamera(status, frames_dir=tmp_path)
    values = [int(cam.read_frame()[0, 0, 0]) for _ in range(3)]
    assert values == [10, 200, 10]


def test_mock_empty_dir_serves_blank(status, tmp_path):
    cam = MockCamera(status, frames_dir=tmp_path)
    assert cam.read_frame().shape == BLANK_SHAPE
    assert any("no images" in line for line in status.logs)


class FakeCapture:
    def __init__(self, opened=True, frames=()):
        self.opened = opened
        self.frames = list(frames)
        self.released = False

    def isOpened(self):
        return self.opened and not self.released

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


def test_cv2_camera_no_frame_yet(status, monkeypatch):
    monkeypatch.setattr(cv2, "VideoCapture", lambda index: FakeCapture(frames=[]))
    cam = CV2Camera(status, index=0)
    assert cam.read_frame() is None


def test_cv2_camera_device_missing_logged_once(status, monkeypatch):
    monkeypatch.setattr(cv2, "VideoCapture", lambda index: FakeCapture(opened=False))
    cam = CV2Camera(status, index=3)
    assert cam.read_frame() is None
    assert cam.read_frame() is None
    assert sum("failed to open device 3" in line for line in status.logs) == 1


def test_cv2_camera_reads_and_releases(status, monkeypatch):
    frame = np.zeros((4, 4, 3), dtype=np.uint8)
    cap = FakeCapture(frames=[frame])
    monkeypatch.setattr(cv2, "VideoCapture", lambda index: cap)
    cam = CV2Camera(status, index=0)
    assert cam.read_frame() is frame
    cam.release()
    cam.release()
    assert cap.released is True
