import pytest
from checkout.addresses import set_address_resolver
from checkout.addresses.fake_adapter import InMemoryAddressBook
from checkout.addresses.port import Address
from checkout.cart import set_cart_manager
from checkout.cart.fake_adapter import InMemoryCartManager
from checkout.catalog import set_catalog
from checkout.catalog.fake_adapter import InMemoryCatalog
from checkout.catalog.port import Sku
from checkout.coupons import get_local_provider
from checkout.integral import set_integral_service
from checkout.integral.fake_adapter import InMemoryIntegralService
from checkout.shipping.template import ShippingTemplate
from protean import current_domain
from protean.integrations.pytest import DomainFixture

USER_ID = "user-001"
ADDRESS_ID = "addr-001"


@pytest.fixture(scope="session")
def checkout_bed():
    from checkout.domain import checkout

    bed = DomainFixture(checkout)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield


@pytest.fixture
def catalog():
    catalog = InMemoryCatalog()
    catalog.add_sku(
        Sku(
            id="sku-a",
            spu_id="spu-a",
            name="Blue",
            spu_name="Ceramic Mug",
            code="MUG-BLU",
            price="50.00",
            category_id="cat-kitchen",
            integral_price=500,
            weight="0.500",
        ),
        stock=100,
    )
    catalog.add_sku(
        Sku(
            id="sku-b",
            spu_id="spu-b",
            name="Teapot",
            code="TEA-001",
            price="30.00",
            category_id="cat-kitchen",
            weight="1.200",
        ),
        stock=100,
    )
    catalog.add_sku(
        Sku(id="sku-gift", spu_id="spu-gift", name="Coaster", code="GIFT-001", price="15.00", weight="0.100"),
        stock=100,
    )
    set_catalog(catalog)
    return catalog


@pytest.fixture
def address_book():
    book = InMemoryAddressBook()
    book.add_address(
        Address(
            id=ADDRESS_ID,
            user_id=USER_ID,
            province="Zhejiang",
            city="Hangzhou",
            district="Xihu",
            detail="1 Lake Road",
            consignee="Li Lei",
            mobile="13800000000",
        )
    )
    set_address_resolver(book)
    return book


@pytest.fixture
def cart_manager():
    manager = InMemoryCartManager()
    set_cart_manager(manager)
    return manager


@pytest.fixture
def integral_service():
    service = InMemoryIntegralService()
    set_integral_service(service)
    return service


@pytest.fixture
def coupon_provider():
    return get_local_provider()


@pytest.fixture
def default_template():
    """Default weight template: 8.00 for the first kg, 5.00 per extra kg."""
    template = ShippingTemplate.create(
        name="Standard",
        charge_type="weight",
        is_default=True,
        first_unit="1.0",
        first_unit_fee="8.00",
        additional_unit="1.0",
        additional_unit_fee="5.00",
    )
    current_domain.repository_for(ShippingTemplate).add(template)
    return template
