import asyncio
import random
from typing import Iterable, List, Optional, Sequence

from pricescan.adapters.classifier.base import ClassifierAdapter
from pricescan.orchestrator.contracts import Label, Prediction
from pricescan.orchestrator.errors import LoadError


class MockClassifier(ClassifierAdapter):
    """Dev/test classifier.

    With `script`, each predict() returns the next scripted prediction list
    (the last one repeats). Without it, one random label gets a high score.
    """

    def __init__(self, status_store, labels: Sequence[Label] = ("Hollandia Evap 120g", "Hollandia 50g"),
                 script: Optional[Iterable[List[Prediction]]] = None,
                 fail_load: bool = False, delay_s: float = 0.0):
        self.status = status_store
        self._labels = list(labels)
        self._script = list(script) if script is not None else None
        self._fail_load = fail_load
        self._delay_s = delay_s
        self._loaded = False
        self.calls = 0

    @property
    def ready(self) -> bool:
        return self._loaded

    async def load(self, model_location: str, metadata_location: str) -> None:
        if self._fail_load:
            self.status.log(f"mock_classifier: refusing to load {model_location}")
            raise LoadError(f"mock load failure for {model_location}")
        self._loaded = True
        self.status.log(f"mock_classifier: loaded {len(self._labels)} labels")

    async def predict(self, frame) -> List[Prediction]:
        if not self._loaded:
            return []
        self.calls += 1
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        if self._script is not None:
            if not self._script:
                return []
            return self._script.pop(0) if len(self._script) > 1 else self._script[0]
        hit = random.choice(self._labels)
        return [
            Prediction(label=l, probability=0.95 if l == hit else 0.05 / max(1, len(self._labels) - 1))
            for l in self._labels
        ]

    def list_labels(self) -> List[Label]:
        return list(self._labels) if self._loaded else []
