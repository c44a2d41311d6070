# endpoints/auction/auctionErrors.py
from typing import Any, Dict, Optional


class AuctionError(ValueError):
    """
    A rejected auction request. Nothing was written when one of these is raised.

    status:  HTTP status the endpoint layer answers with
    details: extra fields merged into the JSON error body
    """

    status = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "error": type(self).__name__, **self.details}


class PreconditionFailed(AuctionError):
    status = 409


class TimerExpired(AuctionError):
    status = 409


class InsufficientFunds(AuctionError):
    status = 400


class RosterFull(AuctionError):
    status = 400


class NotFound(AuctionError):
    status = 404


class Busy(AuctionError):
    """Serializer not acquired in time. Safe to retry."""

    status = 429

    def __init__(self, message: str = "Server busy, retry", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, {"retry": True, **(details or {})})


class StateConflict(Busy):
    """Another writer changed the auction state first (compare-and-swap lost)."""

    status = 409

    def __init__(self, message: str = "Auction state changed, retry", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class NoPendingPlayers(PreconditionFailed):
    pass
