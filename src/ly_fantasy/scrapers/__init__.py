"""Source adapters for the Legislative Yuan feeds."""

from .bills import CosignBillAdapter, ProposeBillAdapter
from .floor_speeches import FloorSpeechAdapter
from .interpellations import WrittenInterpellationAdapter

__all__ = [
    "CosignBillAdapter",
    "FloorSpeechAdapter",
    "ProposeBillAdapter",
    "WrittenInterpellationAdapter",
]
