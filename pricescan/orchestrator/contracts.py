from dataclasses import dataclass
from typing import Mapping, Optional

Label = str

UNMAPPED_PRICE = "Not mapped"
UNMAPPED_CATEGORY = "Unknown ID"

@dataclass(frozen=True)
class Prediction:
    label: Label
    probability: float         # 0.0 .. 1.0, need not sum to 1 across a frame

@dataclass(frozen=True)
class PriceRecord:
    display_name: str
    price: str                 # already formatted, e.g. "₦500"
    category: Optional[str] = None

@dataclass(frozen=True)
class ResolvedResult:
    label: Label
    confidence: float
    record: PriceRecord
    # False when record is the synthesized fallback for a label with no catalog entry
    mapped: bool = True

# Effective label -> record view (defaults merged with user overrides)
CatalogMapping = Mapping[Label, PriceRecord]

def unmapped_fallback(label: Label) -> PriceRecord:
    return PriceRecord(display_name=label, price=UNMAPPED_PRICE, category=UNMAPPED_CATEGORY)
