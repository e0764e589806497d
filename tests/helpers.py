from pricescan.orchestrator.contracts import Prediction, PriceRecord

MILK = PriceRecord(display_name="Milk", price="₦500")


def preds(*pairs):
    """preds(("A", 0.9), ("B", 0.3)) -> list of Prediction."""
    return [Prediction(label=l, probability=p) for l, p in pairs]
