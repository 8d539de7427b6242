"""ShippingTemplate aggregate: how shipping is charged for a group of products.

A template charges by weight, quantity or volume: a first-unit fee covers the
first ``first_unit`` units and each started ``additional_unit`` beyond that
costs ``additional_unit_fee``. Areas refine a template for a region: they can
mark the region as non-deliverable, override the rates or the free-shipping
threshold.

Money and unit amounts are stored as decimal strings.
"""

from enum import Enum

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, HasMany, String, Text

from checkout import money
from checkout.domain import checkout


class ChargeType(Enum):
    WEIGHT = "weight"
    QUANTITY = "quantity"
    VOLUME = "volume"

    @property
    def unit_label(self) -> str:
        return {"weight": "kg", "quantity": "pcs", "volume": "m3"}[self.value]


class ShippingTemplateStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def _amount(value):
    """Normalise an optional decimal-string field, rejecting garbage."""
    if value is None or value == "":
        return None
    try:
        decimal = money.to_decimal(value)
    except (TypeError, ValueError):
        raise ValidationError({"amount": [f"Invalid amount: {value!r}"]}) from None
    if decimal < 0:
        raise ValidationError({"amount": [f"Amount must not be negative: {value}"]})
    return format(decimal, "f")


@checkout.entity(part_of="ShippingTemplate")
class ShippingTemplateArea:
    province_code = String(max_length=20)
    province_name = String(max_length=50)
    city_code = String(max_length=20)
    city_name = String(max_length=50)
    area_code = String(max_length=20)
    area_name = String(max_length=50)  # District
    first_unit = String(max_length=32)
    first_unit_fee = String(max_length=32)
    additional_unit = String(max_length=32)
    additional_unit_fee = String(max_length=32)
    free_shipping_threshold = String(max_length=32)
    is_deliverable = Boolean(default=True)

    def matches(self, province, city, district) -> bool:
        """A blank field on the area matches any value."""
        for expected, actual in (
            (self.province_name, province),
            (self.city_name, city),
            (self.area_name, district),
        ):
            if expected and expected != actual:
                return False
        return True

    @property
    def level(self) -> int:
        if self.area_name:
            return 3
        if self.city_name:
            return 2
        return 1

    @property
    def has_custom_rates(self) -> bool:
        return self.first_unit is not None or self.first_unit_fee is not None


@checkout.aggregate
class ShippingTemplate:
    name = String(required=True, max_length=100)
    description = Text()
    charge_type = String(choices=ChargeType, default=ChargeType.WEIGHT.value)
    is_default = Boolean(default=False)
    status = String(choices=ShippingTemplateStatus, default=ShippingTemplateStatus.ACTIVE.value)
    free_shipping_threshold = String(max_length=32)
    first_unit = String(max_length=32)
    first_unit_fee = String(max_length=32)
    additional_unit = String(max_length=32)
    additional_unit_fee = String(max_length=32)
    areas = HasMany(ShippingTemplateArea)

    @invariant.post
    def additional_fee_needs_an_additional_unit(self):
        if self.additional_unit_fee is not None and money.greater_than(self.additional_unit_fee, 0):
            if self.additional_unit is None or not money.greater_than(self.additional_unit, 0, 3):
                raise ValidationError({"additional_unit": ["Additional unit must be positive when it carries a fee"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        name,
        charge_type=ChargeType.WEIGHT.value,
        is_default=False,
        description=None,
        free_shipping_threshold=None,
        first_unit=None,
        first_unit_fee=None,
        additional_unit=None,
        additional_unit_fee=None,
    ):
        return cls(
            name=name,
            description=description,
            charge_type=charge_type,
            is_default=is_default,
            status=ShippingTemplateStatus.ACTIVE.value,
            free_shipping_threshold=_amount(free_shipping_threshold),
            first_unit=_amount(first_unit),
            first_unit_fee=_amount(first_unit_fee),
            additional_unit=_amount(additional_unit),
            additional_unit_fee=_amount(additional_unit_fee),
        )

    # -------------------------------------------------------------------
    # Areas
    # -------------------------------------------------------------------
    def add_area(
        self,
        province_name=None,
        city_name=None,
        area_name=None,
        is_deliverable=True,
        province_code=None,
        city_code=None,
        area_code=None,
        first_unit=None,
        first_unit_fee=None,
        additional_unit=None,
        additional_unit_fee=None,
        free_shipping_threshold=None,
    ):
        area = ShippingTemplateArea(
            province_code=province_code,
            province_name=province_name,
            city_code=city_code,
            city_name=city_name,
            area_code=area_code,
            area_name=area_name,
            first_unit=_amount(first_unit),
            first_unit_fee=_amount(first_unit_fee),
            additional_unit=_amount(additional_unit),
            additional_unit_fee=_amount(additional_unit_fee),
            free_shipping_threshold=_amount(free_shipping_threshold),
            is_deliverable=is_deliverable,
        )
        self.add_areas(area)
        return area

    def is_deliverable(self, province, city, district=None) -> bool:
        """Deliverable unless a non-deliverable area covers the location."""
        return not any(not area.is_deliverable and area.matches(province, city, district) for area in self.areas)

    def find_best_match(self, province, city, district=None):
        """The most specific deliverable area covering the location, or None."""
        best = None
        for area in self.areas:
            if not area.is_deliverable or not area.matches(province, city, district):
                continue
            if best is None or area.level > best.level:
                best = area
        return best

    @property
    def is_active(self) -> bool:
        return self.status == ShippingTemplateStatus.ACTIVE.value

    def deactivate(self):
        self.status = ShippingTemplateStatus.INACTIVE.value

    def make_default(self, is_default=True):
        self.is_default = is_default


@checkout.repository(part_of=ShippingTemplate)
class ShippingTemplateRepository:
    """Template lookups used by the shipping fee calculator."""

    def find_default(self) -> ShippingTemplate | None:
        """The active default template, if one is configured."""
        templates = self._dao.query.filter(is_default=True, status=ShippingTemplateStatus.ACTIVE.value).all().items
        return templates[0] if templates else None

    def find(self, template_id) -> ShippingTemplate | None:
        """An active template by id."""
        try:
            template = self.get(template_id)
        except ObjectNotFoundError:
            return None
        return template if template.is_active else None

    def find_defaults(self) -> list[ShippingTemplate]:
        return self._dao.query.filter(is_default=True).all().items
