"""
Static catalogue of the data categories partners may request.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Sequence

from .data_models import Category


class UnknownCategory(KeyError):
    """Raised when a category id is not part of the registry."""


DEFAULT_CATEGORIES: Sequence[Category] = (
    Category(
        id="Travel Preferences",
        label="Travel Preferences",
        description="Interests, dietary requirements, accessibility needs, and travel style",
    ),
    Category(
        id="Spending Data",
        label="Spending Data",
        description="Transaction history, spending patterns, and budget information",
    ),
    Category(
        id="Booking History",
        label="Booking History",
        description="Hotel bookings, flight reservations, and activity confirmations",
    ),
    Category(
        id="Location",
        label="Location",
        description="GPS coordinates, check-ins, travel routes, and frequently visited places",
    ),
    Category(
        id="Demographics",
        label="Demographics",
        description="Age, gender, nationality, and other demographic information",
    ),
    Category(
        id="Contact Information",
        label="Contact Information",
        description="Communication preferences and notification settings",
    ),
)


class CategoryRegistry:
    """
    Read-only lookup of categories by id, in catalogue order.
    """

    def __init__(self, categories: Iterable[Category] = DEFAULT_CATEGORIES) -> None:
        self._by_id: Dict[str, Category] = {}
        for category in categories:
            if category.id in self._by_id:
                raise ValueError(f"Duplicate category id: {category.id}")
            self._by_id[category.id] = category

    def by_id(self, category_id: str) -> Category:
        try:
            return self._by_id[category_id]
        except KeyError:
            raise UnknownCategory(category_id) from None

    def ids(self) -> List[str]:
        return list(self._by_id)

    def labels(self) -> List[str]:
        return [category.label for category in self._by_id.values()]

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    def __iter__(self) -> Iterator[Category]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)
