from abc import ABC, abstractmethod

class CameraAdapter(ABC):
    @abstractmethod
    def read_frame(self):
        """Grab the latest frame as a BGR ndarray, or None if no frame is available yet."""
        ...

    def release(self):
        """Free the device. Safe to call more than once."""
