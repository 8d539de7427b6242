"""Address resolver port.

Delivery addresses live in another context. Checkout only needs the region
hierarchy (province, city, district) for shipping and the contact details
copied onto the order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Address:
    id: str
    user_id: str
    province: str
    city: str
    district: str | None = None
    detail: str = ""
    consignee: str = ""
    mobile: str = ""
    province_code: str | None = None
    city_code: str | None = None
    district_code: str | None = None


class AddressResolver(ABC):
    @abstractmethod
    def resolve_address(self, address_id: str, user_id: str | None = None) -> Address | None:
        """Return the address, or None when it does not exist or belongs to another user."""
        ...
