"""
OpenCV DNN image classifier.

Loads any network `cv2.dnn.readNet` understands (ONNX, frozen TF .pb, Caffe)
plus a Teachable-Machine style metadata.json:

    {"labels": ["Hollandia Evap 120g", "Hollandia 50g", ...], "imageSize": 224}

Input frames are BGR uint8 (as OpenCV captures them). They are resized to
imageSize, converted to RGB and scaled to [-1, 1], which is what exported
Teachable Machine / MobileNet models expect.
"""
import asyncio
import json
from pathlib import Path
from typing import List

import cv2
import numpy as np

from pricescan.adapters.classifier.base import ClassifierAdapter
from pricescan.orchestrator.contracts import Label, Prediction
from pricescan.orchestrator.errors import LoadError, PredictError

DEFAULT_IMAGE_SIZE = 224


def read_metadata(metadata_location: str) -> tuple[List[Label], int]:
    data = json.loads(Path(metadata_location).read_text(encoding="utf-8"))
    labels = data.get("labels") if isinstance(data, dict) else None
    if not isinstance(labels, list) or not labels or not all(isinstance(l, str) for l in labels):
        raise ValueError("metadata has no usable 'labels' list")
    size = int(data.get("imageSize", DEFAULT_IMAGE_SIZE))
    if size <= 0:
        raise ValueError(f"bad imageSize {size}")
    return labels, size


class Cv2DnnClassifier(ClassifierAdapter):
    def __init__(self, status_store):
        self.status = status_store
        self._net = None
        self._labels: List[Label] = []
        self._size = DEFAULT_IMAGE_SIZE
        self._failed = False

    @property
    def ready(self) -> bool:
        return self._net is not None

    async def load(self, model_location: str, metadata_location: str) -> None:
        if self._failed:
            raise LoadError("classifier already failed to load in this session")
        self.status.log(f"cv2_dnn: loading model={model_location} metadata={metadata_location}")
        try:
            labels, size = await asyncio.to_thread(read_metadata, metadata_location)
            net = await asyncio.to_thread(cv2.dnn.readNet, str(model_location))
            if net.empty():
                raise ValueError("network is empty")
            # warm up so the first real tick isn't the slow one
            await asyncio.to_thread(self._forward, net, np.zeros((size, size, 3), dtype=np.uint8), size)
        except (OSError, ValueError, TypeError, cv2.error) as e:
            self._failed = True
            self.status.log(f"cv2_dnn: load failed: {type(e).__name__}: {e}")
            raise LoadError(f"could not load the scanner model: {e}") from e

        self._net, self._labels, self._size = net, labels, size
        self.status.log(f"cv2_dnn: ready, {len(labels)} labels, input {size}x{size}")

    async def predict(self, frame) -> List[Prediction]:
        if self._net is None:
            return []
        try:
            scores = await asyncio.to_thread(self._forward, self._net, frame, self._size)
        except cv2.error as e:
            raise PredictError(f"forward pass failed: {e}") from e
        if scores.shape[0] != len(self._labels):
            raise PredictError(f"model returned {scores.shape[0]} scores for {len(self._labels)} labels")
        return [
            Prediction(label=label, probability=float(p))
            for label, p in zip(self._labels, np.clip(scores, 0.0, 1.0))
        ]

    def list_labels(self) -> List[Label]:
        return list(self._labels)

    @staticmethod
    def _forward(net, frame, size: int) -> np.ndarray:
        blob = cv2.dnn.blobFromImage(
            frame,
            scalefactor=1.0 / 127.5,
            size=(size, size),
            mean=(127.5, 127.5, 127.5),
            swapRB=True,
            crop=False,
        )
        net.setInput(blob)
        out = net.forward()
        return np.asarray(out, dtype=np.float32).reshape(-1)
