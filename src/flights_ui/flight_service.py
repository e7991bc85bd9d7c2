from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class FlightOffer:
    flight_id: str
    price: float
    discount_percentage: int
    duration_in_min: int
    num_layovers: int
    is_pet_allowed: bool


class FlightCatalog:
    """Read-only table of flight offers filtered by price and discount."""

    def __init__(self, offers: Iterable[FlightOffer] = ()):
        self._offers: Tuple[FlightOffer, ...] = tuple(offers)

    def search(
            self,
            origin_city: str,
            destination_city: str,
            max_price: float,
            min_discount_percentage: float,
    ) -> List[FlightOffer]:
        # Origin and destination are accepted for parity with the tool input but do not narrow the result.
        return [
            offer for offer in self._offers
            if offer.price <= max_price and offer.discount_percentage >= min_discount_percentage
        ]


def _seed_offers() -> List[FlightOffer]:
    return [
        FlightOffer(
            flight_id="AA123",
            price=350.50,
            discount_percentage=10,
            duration_in_min=255,
            num_layovers=1,
            is_pet_allowed=True,
        ),
        FlightOffer(
            flight_id="UA456",
            price=520.00,
            discount_percentage=5,
            duration_in_min=390,
            num_layovers=0,
            is_pet_allowed=False,
        ),
        FlightOffer(
            flight_id="DL789",
            price=289.99,
            discount_percentage=15,
            duration_in_min=175,
            num_layovers=0,
            is_pet_allowed=True,
        ),
        FlightOffer(
            flight_id="SW011",
            price=410.75,
            discount_percentage=0,
            duration_in_min=440,
            num_layovers=2,
            is_pet_allowed=False,
        ),
    ]


flight_catalog = FlightCatalog(_seed_offers())
