"""
Decision policy: raw classifier output -> the single "current" catalog entry.

Pure: no clock, no loop state, no I/O. The tick calls it with the
predictions of one frame and a snapshot of the effective mapping.
"""
from typing import Iterable, Optional

from pricescan.orchestrator.contracts import (
    CatalogMapping, Prediction, ResolvedResult, unmapped_fallback,
)


def pick_best(predictions: Iterable[Prediction]) -> Optional[Prediction]:
    """Highest probability wins; on exact ties the first one seen is kept.

    Only a positive score can win, so NaN or zero scores never hide a real
    detection and an all-zero frame picks nothing.
    """
    best = None
    best_prob = 0.0
    for p in predictions:
        if p.probability > best_prob:
            best, best_prob = p, p.probability
    return best


def resolve(predictions: Iterable[Prediction], mapping: CatalogMapping,
            threshold: float) -> Optional[ResolvedResult]:
    best = pick_best(predictions)
    # exactly at the threshold does not clear the gate
    if best is None or not best.probability > threshold:
        return None

    record = mapping.get(best.label)
    if record is None:
        return ResolvedResult(
            label=best.label,
            confidence=best.probability,
            record=unmapped_fallback(best.label),
            mapped=False,
        )
    return ResolvedResult(label=best.label, confidence=best.probability, record=record)
