from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from flights_ui.flight_service import FlightOffer


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchFilters(CamelModel):
    """Price and discount thresholds for a flight search."""
    price: float = Field(description="Maximum ticket price")
    discount_percentage: float = Field(description="Minimum discount percentage")


class FlightSearchInput(CamelModel):
    """Input for the flight search tools."""
    origin_city: str = Field(description="City the trip starts from")
    destination_city: str = Field(description="City the trip ends in")
    date_of_travel: str = Field(description="Date of travel, e.g. 2025-01-15")
    filters: SearchFilters = Field(description="Price and discount filters")


class FlightOfferData(CamelModel):
    flight_id: str
    price: float
    discount_percentage: int
    duration_in_min: int
    num_layovers: int
    is_pet_allowed: bool

    @classmethod
    def from_domain(cls, offer: FlightOffer):
        return cls(
            flight_id=offer.flight_id,
            price=offer.price,
            discount_percentage=offer.discount_percentage,
            duration_in_min=offer.duration_in_min,
            num_layovers=offer.num_layovers,
            is_pet_allowed=offer.is_pet_allowed,
        )


class FlightsData(CamelModel):
    flights: List[FlightOfferData]

    @classmethod
    def from_domain(cls, offers: List[FlightOffer]):
        return cls(flights=[FlightOfferData.from_domain(offer) for offer in offers])

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
