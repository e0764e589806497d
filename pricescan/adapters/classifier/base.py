from abc import ABC, abstractmethod
from typing import List

from pricescan.orchestrator.contracts import Label, Prediction


class ClassifierAdapter(ABC):
    """Owns one loaded model. Load once per session; a failed load is final."""

    @property
    @abstractmethod
    def ready(self) -> bool:
        ...

    @abstractmethod
    async def load(self, model_location: str, metadata_location: str) -> None:
        """Raise LoadError if the model or its label metadata can't be loaded."""
        ...

    @abstractmethod
    async def predict(self, frame) -> List[Prediction]:
        """Return one Prediction per label for this frame.

        Returns [] (not an error) before a successful load.
        Raises PredictError if the model call itself fails.
        """
        ...

    @abstractmethod
    def list_labels(self) -> List[Label]:
        ...
