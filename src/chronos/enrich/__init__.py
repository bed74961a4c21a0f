"""Enrichment clients for Chronos Vault."""

from .client import (
    EnrichmentClient,
    OfflineEnrichmentClient,
    RealEnrichmentClient,
    get_enrichment_client,
)

__all__ = [
    "EnrichmentClient",
    "OfflineEnrichmentClient",
    "RealEnrichmentClient",
    "get_enrichment_client",
]
