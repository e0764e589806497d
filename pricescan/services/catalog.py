"""Built-in default layer of the catalog, shipped with the build.

Keys must match the labels in the classifier's metadata.json exactly.
"""
from types import MappingProxyType

from pricescan.orchestrator.contracts import PriceRecord

DEFAULT_CATALOG = MappingProxyType({
    "Hollandia Evap 120g": PriceRecord(
        display_name="Hollandia Evaporated Milk (120g)", price="₦500", category="Dairy"),
    "Beloxxi Cream cracker": PriceRecord(
        display_name="Beloxxi Cream Crackers", price="₦50", category="Snacks"),
    "Hollandia 50g": PriceRecord(
        display_name="Hollandia Evaporated Milk (50g)", price="₦250", category="Dairy"),
    "three crown triangle": PriceRecord(
        display_name="Three Crowns Milk (Sachet)", price="₦300", category="Dairy"),
    # placeholder class some exported models carry
    "Class 1": PriceRecord(display_name="Generic Item", price="₦0.00", category="Unknown"),
})

CONFIDENCE_THRESHOLD = 0.85
MODEL_PATH = "my_model/model.onnx"
METADATA_PATH = "my_model/metadata.json"
