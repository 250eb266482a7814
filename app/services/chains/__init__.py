"""Chain label to vendor network mapping."""

from app.services.chains.networks import (
    NetworkInfo,
    chain_family,
    display_name,
    explorer_url,
    get_network,
    resolve_chain,
    supported_chains,
    to_caip2,
    to_vendor_network,
)


__all__ = [
    "NetworkInfo",
    "chain_family",
    "display_name",
    "explorer_url",
    "get_network",
    "resolve_chain",
    "supported_chains",
    "to_caip2",
    "to_vendor_network",
]
