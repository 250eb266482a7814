"""Custody and wallet vendor clients."""

from app.services.custody.cdp_client import CdpClient
from app.services.custody.privy_client import CustodialWallet, PrivyClient


__all__ = ["CdpClient", "CustodialWallet", "PrivyClient"]
