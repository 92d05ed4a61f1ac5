"""
Business directory: maps an authenticated user to the business they act for.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from veritasor.utils.ids import generate_uuid
from veritasor.utils.timestamps import to_iso, utc_now


@dataclass(frozen=True)
class Business:
    id: str
    user_id: str
    name: str
    email: str
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "email": self.email,
            "createdAt": to_iso(self.created_at),
        }


class BusinessDirectory(ABC):
    @abstractmethod
    async def resolve_business_id(self, user_id: str) -> Optional[str]:
        """Return the id of the business owned by ``user_id``, if any."""


class InMemoryBusinessDirectory(BusinessDirectory):
    def __init__(self, businesses: Iterable[Business] = ()) -> None:
        self._by_id: Dict[str, Business] = {}
        for business in businesses:
            self._by_id[business.id] = business

    def register(self, user_id: str, name: str, email: str, business_id: Optional[str] = None) -> Business:
        business = Business(id=business_id or generate_uuid(), user_id=user_id, name=name, email=email)
        self._by_id[business.id] = business
        return business

    def find_by_id(self, business_id: str) -> Optional[Business]:
        return self._by_id.get(business_id)

    def find_by_user_id(self, user_id: str) -> Optional[Business]:
        for business in self._by_id.values():
            if business.user_id == user_id:
                return business
        return None

    def all(self) -> List[Business]:
        return list(self._by_id.values())

    async def resolve_business_id(self, user_id: str) -> Optional[str]:
        business = self.find_by_user_id(user_id)
        return business.id if business else None
