"""
Runtime settings, read from the environment (optionally a .env file).

    CLASSIFIER_ADAPTER   cv2 | mock                  (default cv2)
    MODEL_PATH           exported model for cv2.dnn  (default my_model/model.onnx)
    METADATA_PATH        metadata.json with labels   (default my_model/metadata.json)
    CONFIDENCE_THRESHOLD gate, strictly greater than (default 0.85)
    OVERRIDES_PATH       JSON file holding user price overrides
    TICK_INTERVAL_S      pause between ticks         (default 1/30)
    CAMERA_ADAPTER       cv2 | mock                  (default cv2)
    CAMERA_INDEX         webcam index for cv2        (default 0)
    MOCK_FRAMES_DIR      stills for the mock camera
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from pricescan.orchestrator.state_machine import DEFAULT_TICK_INTERVAL_S
from pricescan.services.catalog import CONFIDENCE_THRESHOLD, METADATA_PATH, MODEL_PATH

DEFAULT_ENV_FILE = "pricescan/.env"
DEFAULT_OVERRIDES_PATH = "pricescan_overrides.json"


@dataclass
class ScannerConfig:
    classifier_adapter: str = "cv2"
    model_path: str = MODEL_PATH
    metadata_path: str = METADATA_PATH
    threshold: float = CONFIDENCE_THRESHOLD
    overrides_path: str = DEFAULT_OVERRIDES_PATH
    tick_interval: float = DEFAULT_TICK_INTERVAL_S
    camera_adapter: str = "cv2"
    camera_index: int = 0
    mock_frames_dir: Optional[str] = None
    # problems found while reading the environment, logged once the status store exists
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls, env_file: Optional[str] = DEFAULT_ENV_FILE) -> "ScannerConfig":
        if env_file:
            load_dotenv(dotenv_path=env_file, override=False)
        cfg = cls(
            classifier_adapter=os.getenv("CLASSIFIER_ADAPTER", "cv2").lower(),
            model_path=os.getenv("MODEL_PATH", MODEL_PATH),
            metadata_path=os.getenv("METADATA_PATH", METADATA_PATH),
            overrides_path=os.getenv("OVERRIDES_PATH", DEFAULT_OVERRIDES_PATH),
            camera_adapter=os.getenv("CAMERA_ADAPTER", "cv2").lower(),
            mock_frames_dir=os.getenv("MOCK_FRAMES_DIR") or None,
        )
        cfg.threshold = cfg._float_env("CONFIDENCE_THRESHOLD", CONFIDENCE_THRESHOLD)
        cfg.tick_interval = cfg._float_env("TICK_INTERVAL_S", DEFAULT_TICK_INTERVAL_S)
        cfg.camera_index = int(cfg._float_env("CAMERA_INDEX", 0))
        if not 0.0 <= cfg.threshold < 1.0:
            cfg.warnings.append(f"CONFIDENCE_THRESHOLD={cfg.threshold} out of range, using {CONFIDENCE_THRESHOLD}")
            cfg.threshold = CONFIDENCE_THRESHOLD
        if cfg.tick_interval < 0:
            cfg.warnings.append(f"TICK_INTERVAL_S={cfg.tick_interval} negative, using {DEFAULT_TICK_INTERVAL_S:.3f}")
            cfg.tick_interval = DEFAULT_TICK_INTERVAL_S
        return cfg

    def _float_env(self, name: str, default: float) -> float:
        raw = os.getenv(name)
        if raw is None or raw.strip() == "":
            return default
        try:
            return float(raw)
        except ValueError:
            self.warnings.append(f"{name}={raw!r} is not a number, using {default}")
            return default
