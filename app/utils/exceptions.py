"""
Exception types.

Vendor wrappers translate HTTP and RPC failures into these classes at a
single point, so retry decisions never depend on message text.
"""


class HedwigError(Exception):
    """Base class for application errors."""


class VendorError(HedwigError):
    """
    Error returned by an external provider.

    Attributes:
        vendor: Provider name ("privy", "cdp", "paycrest", "rpc")
        status: HTTP status, if any
        payload: Decoded error body, if any
    """

    def __init__(
        self,
        message: str,
        vendor: str = "",
        status: int | None = None,
        payload: object = None,
    ) -> None:
        super().__init__(message)
        self.vendor = vendor
        self.status = status
        self.payload = payload


class TransientNetworkError(VendorError):
    """Temporary failure (timeout, connection reset, 429, 5xx)."""


class BlockhashExpiredError(TransientNetworkError):
    """Solana transaction referenced a blockhash the cluster no longer accepts."""


class RejectedError(VendorError):
    """Provider refused the request (invalid input, insufficient funds, bad address)."""


class InvalidTransactionError(RejectedError):
    """Transfer request failed local validation before reaching a provider."""


class WalletCreationError(HedwigError):
    """Custody vendor could not create a wallet after retries."""


class UnsupportedChainError(HedwigError):
    """Chain label has no mapping."""


class DocumentRenderError(HedwigError):
    """Headless browser could not produce a PDF in time."""


def user_facing_reason(exc: Exception) -> str:
    """
    Short, sanitized failure reason suitable for a chat message.

    Args:
        exc: Exception raised by a service

    Returns:
        Friendly text without internal details
    """
    if isinstance(exc, InvalidTransactionError):
        return str(exc)
    if isinstance(exc, BlockhashExpiredError):
        return "The network was congested and the transaction expired. Please try again."
    if isinstance(exc, TransientNetworkError):
        return "The network is not responding right now. Please try again in a moment."
    if isinstance(exc, RejectedError):
        message = str(exc).lower()
        if "insufficient" in message:
            return "Insufficient funds to cover the amount and network fees."
        if "address" in message:
            return "The recipient address was rejected by the network."
        return "The transaction was rejected by the network."
    if isinstance(exc, WalletCreationError):
        return "We couldn't set up your wallet right now. Please try again later."
    if isinstance(exc, UnsupportedChainError):
        return "That network is not supported yet."
    if isinstance(exc, DocumentRenderError):
        return "I couldn't generate the PDF right now. Please try again later."
    return "Something went wrong. Please try again."
