"""
Gateway layer - failure-safe provider access
"""

from heights_ai.gateway.provider_gateway import (
    Capability,
    ProviderGateway,
    ProviderResult,
)

__all__ = [
    "Capability",
    "ProviderGateway",
    "ProviderResult",
]
