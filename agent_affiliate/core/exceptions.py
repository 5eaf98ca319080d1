"""
Error taxonomy for link generation, short links and reward reconciliation.

Every error that reaches the HTTP boundary derives from AffiliateError and
carries its status code; main.py renders it as {"success": false, "error": ...}.
Adapter-level errors never reach the boundary: the link dispatcher absorbs
them and falls back.
"""

from typing import Any, Dict, Optional


class AffiliateError(Exception):
    """Base error with an HTTP status for the API boundary."""
    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Dict[str, Any] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AffiliateError):
    """Malformed wallet address or missing required field."""
    status_code = 400


class MerchantNotLinkable(AffiliateError):
    """Merchant has no cashback rate in the settlement token."""
    status_code = 400


class NotFoundError(AffiliateError):
    status_code = 404


class MerchantNotFound(NotFoundError):
    def __init__(self, merchant_id: str):
        super().__init__("Merchant not found", details={"merchant_id": merchant_id})


class LinkNotFound(NotFoundError):
    def __init__(self, reference: str = None):
        super().__init__("Link not found", details={"reference": reference})


class ShortCodeNotFound(NotFoundError):
    def __init__(self, code: str):
        super().__init__("Short link not found", details={"code": code})


class ReconciliationConflict(AffiliateError):
    """Concurrent postbacks kept invalidating the merge."""
    status_code = 409


class LinkGenerationFailed(AffiliateError):
    """Both the network adapter and the mediated fallback failed."""
    status_code = 502


class ShortCodeExhausted(AffiliateError):
    """No free short code after the bounded number of draws."""
    status_code = 500


# ==================== Outbound collaborator errors ====================

class NetworkAdapterError(Exception):
    """Custom exception for affiliate network errors."""
    def __init__(self, message: str, network: str = None, error_code: str = None, details: Dict = None):
        self.message = message
        self.network = network
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class CredentialsMissing(NetworkAdapterError):
    pass


class UpstreamRejected(NetworkAdapterError):
    pass


class UpstreamUnavailable(NetworkAdapterError):
    pass


class UnsupportedNetwork(NetworkAdapterError):
    pass


class CatalogError(AffiliateError):
    """Merchant catalog backend failed or returned garbage."""
    status_code = 502


class PayoutError(Exception):
    """Payout request failed. Reported as a soft error, never fatal to a postback."""
    def __init__(self, message: str, reference: str = None):
        self.message = message
        self.reference = reference
        super().__init__(self.message)
