from dataclasses import dataclass, field
from typing import Optional, List

MAX_LOGS = 200

@dataclass
class StatusStore:
    fatal_error: Optional[str] = None     # set once when the classifier fails to load
    persist_error: Optional[str] = None   # last failed override save, cleared on next good save
    ticks: int = 0
    skipped_ticks: int = 0                # video not ready
    failed_ticks: int = 0                 # predict or resolve raised
    logs: List[str] = field(default_factory=list)

    def set_fatal(self, msg: str):
        self.fatal_error = msg
        self.log(f"FATAL {msg}")

    def log(self, msg: str):
        self.logs.append(msg)
        if len(self.logs) > MAX_LOGS:
            self.logs = self.logs[-MAX_LOGS:]
