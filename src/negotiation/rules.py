"""Turn rules of the price negotiation.

Pure functions over the job's negotiation status and its offer history, so
the service and the field client gate actions the same way.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from src.negotiation.models import NegotiationStatus, OfferType, Party


class NegotiationError(Exception):
    """Base class for refused negotiation actions."""


class NegotiationClosed(NegotiationError):
    pass


class NotYourTurn(NegotiationError):
    pass


class NoOfferToAnswer(NegotiationError):
    pass


class InvalidAmount(NegotiationError):
    pass


class OfferLike(Protocol):
    @property
    def offered_by(self) -> Party: ...


def can_make_offer(status: NegotiationStatus, party: Party) -> bool:
    if status.is_terminal:
        return False
    if status is NegotiationStatus.NOT_STARTED:
        # Only the inspector opens a negotiation.
        return party is Party.INSPECTOR
    if status is NegotiationStatus.PENDING_ADMIN:
        return party is Party.ADMIN
    return party is Party.INSPECTOR


def can_respond(
    offers: Sequence[OfferLike], status: NegotiationStatus, party: Party
) -> bool:
    if not offers or status.is_terminal:
        return False
    return offers[-1].offered_by is not party


def offer_type_for(offers: Sequence[OfferLike], party: Party) -> OfferType:
    if not offers:
        return OfferType.INITIAL
    return OfferType.COUNTER_ADMIN if party is Party.ADMIN else OfferType.COUNTER_USER


def status_after_offer(party: Party) -> NegotiationStatus:
    if party is Party.ADMIN:
        return NegotiationStatus.PENDING_USER
    return NegotiationStatus.PENDING_ADMIN


def check_offer(status: NegotiationStatus, party: Party, amount: float) -> None:
    """Raise the matching `NegotiationError` unless `party` may offer `amount`."""
    if status.is_terminal:
        raise NegotiationClosed(f"Negotiation already {status.value}")
    if not can_make_offer(status, party):
        raise NotYourTurn(f"{party.value} cannot make an offer while {status.value}")
    if not amount > 0:
        raise InvalidAmount("Offer amount must be positive")


def check_response(
    offers: Sequence[OfferLike], status: NegotiationStatus, party: Party
) -> None:
    """Raise the matching `NegotiationError` unless `party` may accept/decline."""
    if status.is_terminal:
        raise NegotiationClosed(f"Negotiation already {status.value}")
    if not offers:
        raise NoOfferToAnswer("There is no offer to respond to")
    if not can_respond(offers, status, party):
        raise NotYourTurn(f"{party.value} cannot answer their own offer")
