"""In-memory address book for development and testing."""

from checkout.addresses.port import Address, AddressResolver


class InMemoryAddressBook(AddressResolver):
    def __init__(self) -> None:
        self.addresses: dict[str, Address] = {}
        self.calls: list[dict] = []

    def add_address(self, address: Address) -> Address:
        self.addresses[str(address.id)] = address
        return address

    def resolve_address(self, address_id: str, user_id: str | None = None) -> Address | None:
        self.calls.append({"method": "resolve_address", "address_id": address_id, "user_id": user_id})
        address = self.addresses.get(str(address_id))
        if address is None:
            return None
        if user_id is not None and str(address.user_id) != str(user_id):
            return None
        return address
