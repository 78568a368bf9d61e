"""
Bootstrap partner catalogue and the pool new offers are drawn from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .data_models import Partner, Reward, RewardCategory


@dataclass(frozen=True)
class PartnerTemplate:
    """
    A partner offer before it is given an id and registered.
    """

    name: str
    logo: str
    required_categories: Tuple[str, ...]
    reward: Reward

    def build(self, partner_id: int) -> Partner:
        return Partner(
            id=partner_id,
            name=self.name,
            logo=self.logo,
            required_categories=frozenset(self.required_categories),
            reward=self.reward,
        )


def _template(
    name: str,
    logo: str,
    categories: Sequence[str],
    reward_id: str,
    title: str,
    description: str,
    category: RewardCategory,
    value: str,
    expiry_date: str,
    terms: str,
) -> PartnerTemplate:
    return PartnerTemplate(
        name=name,
        logo=logo,
        required_categories=tuple(categories),
        reward=Reward(
            id=reward_id,
            title=title,
            description=description,
            category=category,
            value=value,
            expiry_date=expiry_date,
            terms=terms,
        ),
    )


BOOTSTRAP_PARTNERS: Tuple[PartnerTemplate, ...] = (
    _template(
        "Air New Zealand", "✈️", ["Travel Preferences", "Booking History"],
        "air-nz-flight", "10% Off Flights",
        "Save on your next domestic or international flight with Air New Zealand",
        RewardCategory.TRAVEL, "10% OFF", "Dec 31, 2025",
        "Valid for bookings over $300. Cannot be combined with other offers.",
    ),
    _template(
        "Booking.com", "🏨", ["Booking History", "Spending Data"],
        "booking-hotel", "Free Night Stay",
        "Complimentary night at participating hotels across New Zealand",
        RewardCategory.TRAVEL, "FREE NIGHT", "Mar 15, 2026",
        "Minimum 2-night stay required. Subject to availability.",
    ),
    _template(
        "Tourism New Zealand", "🇳🇿", ["Travel Preferences", "Location"],
        "tourism-nz-voucher", "$25 Dining Credit",
        "Enjoy fine dining at premium restaurants in Auckland and Wellington",
        RewardCategory.DINING, "$25", "Jan 30, 2026",
        "Valid at participating restaurants. Minimum spend $50.",
    ),
    _template(
        "Queenstown Tours", "🏔️", ["Travel Preferences", "Location", "Spending Data"],
        "queenstown-adventure", "20% Off Adventures",
        "Discount on adventure activities and tours in Queenstown",
        RewardCategory.TRAVEL, "20% OFF", "Apr 20, 2026",
        "Valid for most adventure activities. Some exclusions apply.",
    ),
    _template(
        "Rental Cars NZ", "🚗", ["Booking History", "Demographics"],
        "rental-cars-credit", "$50 Rental Credit",
        "Credit towards your next car rental booking",
        RewardCategory.TRAVEL, "$50", "Jun 30, 2026",
        "Valid for rentals 3 days or more.",
    ),
    _template(
        "Auckland Restaurants", "🍷", ["Demographics", "Spending Data", "Location"],
        "auckland-dining", "Wine Tasting Experience",
        "Complimentary wine tasting for 2 at premium Marlborough wineries",
        RewardCategory.DINING, "FREE", "May 15, 2026",
        "Advance booking required. Transport not included.",
    ),
    _template(
        "Retail Partners NZ", "🛍️", ["Spending Data", "Demographics"],
        "retail-shopping", "$50 Shopping Voucher",
        "Use at participating retail stores and online shopping platforms",
        RewardCategory.SHOPPING, "$50", "Feb 28, 2026",
        "Cannot be used for gift cards or sale items.",
    ),
    _template(
        "Kiwi Experience", "🚌", ["Travel Preferences", "Location"],
        "kiwi-experience", "$30 Bus Pass Voucher",
        "Discount on hop-on hop-off bus passes around New Zealand",
        RewardCategory.TRAVEL, "$30", "Jul 15, 2026",
        "Valid on all routes. Not combinable with other discounts.",
    ),
)

OFFER_POOL: Tuple[PartnerTemplate, ...] = (
    _template(
        "Milford Sound Cruises", "🚢", ["Contact Information", "Demographics", "Location"],
        "milford-cruise", "15% Discount on Cruises",
        "Save on scenic cruises through Milford Sound",
        RewardCategory.TRAVEL, "15% OFF", "Aug 20, 2026",
        "Subject to availability. Advance booking recommended.",
    ),
    _template(
        "Skyline Gondola", "🚡", ["Travel Preferences", "Demographics"],
        "skyline-gondola", "$20 Attraction Credit",
        "Credit towards gondola rides and dining experiences",
        RewardCategory.TRAVEL, "$20", "Sep 10, 2026",
        "Valid at Queenstown and Rotorua locations.",
    ),
    _template(
        "Franz Josef Tours", "🏔️", ["Location", "Spending Data"],
        "franz-josef", "25% Off Glacier Tours",
        "Discount on guided glacier hiking and scenic flights",
        RewardCategory.TRAVEL, "25% OFF", "Oct 30, 2026",
        "Weather dependent. Bookings subject to availability.",
    ),
    _template(
        "Rotorua Adventures", "♨️", ["Travel Preferences", "Booking History"],
        "rotorua-adventure", "$35 Activity Voucher",
        "Use for hot pools, Māori cultural experiences, and adventure activities",
        RewardCategory.TRAVEL, "$35", "Nov 15, 2026",
        "Valid at participating Rotorua attractions.",
    ),
    _template(
        "Wellington Dining", "🍽️", ["Spending Data", "Location"],
        "wellington-dining", "$40 Restaurant Voucher",
        "Enjoy fine dining at top Wellington restaurants",
        RewardCategory.DINING, "$40", "Jan 15, 2027",
        "Minimum spend $80. Excludes alcohol.",
    ),
    _template(
        "Christchurch Shopping", "🛒", ["Demographics", "Spending Data"],
        "christchurch-shopping", "$60 Shopping Credit",
        "Shop at major retail centers in Christchurch",
        RewardCategory.SHOPPING, "$60", "Feb 10, 2027",
        "Valid at participating stores only.",
    ),
)


def initial_partners() -> List[Partner]:
    return [template.build(index + 1) for index, template in enumerate(BOOTSTRAP_PARTNERS)]
