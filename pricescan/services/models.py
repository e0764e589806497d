from pydantic import BaseModel, Field
from typing import Literal, Optional

from pricescan.orchestrator.contracts import PriceRecord, ResolvedResult

class PriceRecordIn(BaseModel):
    # a save is always a full record, never a partial patch
    display_name: str = Field(min_length=1)
    price: str = Field(min_length=1)
    category: Optional[str] = None

    def to_record(self) -> PriceRecord:
        return PriceRecord(display_name=self.display_name, price=self.price, category=self.category)

class PriceRecordOut(BaseModel):
    display_name: str
    price: str
    category: Optional[str] = None

    @classmethod
    def from_record(cls, rec: PriceRecord) -> "PriceRecordOut":
        return cls(display_name=rec.display_name, price=rec.price, category=rec.category)

class ResolvedOut(BaseModel):
    detected: bool
    label: Optional[str] = None
    confidence: Optional[float] = None
    mapped: Optional[bool] = None
    record: Optional[PriceRecordOut] = None
    generation: int = 0

    @classmethod
    def from_result(cls, result: Optional[ResolvedResult], generation: int = 0) -> "ResolvedOut":
        if result is None:
            return cls(detected=False, generation=generation)
        return cls(
            detected=True,
            label=result.label,
            confidence=result.confidence,
            mapped=result.mapped,
            record=PriceRecordOut.from_record(result.record),
            generation=generation,
        )

LoopStateName = Literal["idle", "loading", "running", "suspended", "stopped"]

class StatusResponse(BaseModel):
    state: LoopStateName
    ready: bool                              # classifier loaded, loop producing results
    fatal_error: Optional[str] = None        # full-surface error state (model load failed)
    error_code: Optional[str] = None         # LOAD_FAILED alongside fatal_error
    persist_error: Optional[str] = None      # inline, retryable save error
    result: ResolvedOut
    ticks: int = 0
    skipped_ticks: int = 0
    failed_ticks: int = 0
    logs: list[str]

class LabelsResponse(BaseModel):
    ready: bool
    labels: list[str]

class MappingEntryOut(BaseModel):
    label: str
    source: Literal["override", "default", "unmapped"]
    record: PriceRecordOut

class SetOverrideResponse(BaseModel):
    ok: bool
    persisted: bool
    label: str
    record: Optional[PriceRecordOut] = None
    error_code: Optional[str] = None
    error: Optional[str] = None

class LoopControlResponse(BaseModel):
    ok: bool
    state: LoopStateName
    error_code: Optional[str] = None
