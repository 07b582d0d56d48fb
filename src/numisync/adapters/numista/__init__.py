from .client import NumistaClient, ScoredCandidate, TieredLookup
from .endpoints import endpoint_name

__all__ = [
    "NumistaClient",
    "ScoredCandidate",
    "TieredLookup",
    "endpoint_name",
]
