"""Shipping template management: commands and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from checkout.domain import checkout
from checkout.shipping.template import ChargeType, ShippingTemplate


@checkout.command(part_of="ShippingTemplate")
class CreateShippingTemplate:
    name = String(required=True, max_length=100)
    description = Text()
    charge_type = String(choices=ChargeType, default=ChargeType.WEIGHT.value)
    is_default = Boolean(default=False)
    free_shipping_threshold = String(max_length=32)
    first_unit = String(max_length=32)
    first_unit_fee = String(max_length=32)
    additional_unit = String(max_length=32)
    additional_unit_fee = String(max_length=32)


@checkout.command(part_of="ShippingTemplate")
class AddShippingArea:
    template_id = Identifier(required=True)
    province_name = String(max_length=50)
    city_name = String(max_length=50)
    area_name = String(max_length=50)
    province_code = String(max_length=20)
    city_code = String(max_length=20)
    area_code = String(max_length=20)
    is_deliverable = Boolean(default=True)
    first_unit = String(max_length=32)
    first_unit_fee = String(max_length=32)
    additional_unit = String(max_length=32)
    additional_unit_fee = String(max_length=32)
    free_shipping_threshold = String(max_length=32)


@checkout.command(part_of="ShippingTemplate")
class DeactivateShippingTemplate:
    template_id = Identifier(required=True)


@checkout.command_handler(part_of=ShippingTemplate)
class ShippingTemplateHandler:
    @handle(CreateShippingTemplate)
    def create_template(self, command):
        repo = current_domain.repository_for(ShippingTemplate)

        if command.is_default:
            # Only one default template at a time
            for existing in repo.find_defaults():
                existing.make_default(False)
                repo.add(existing)

        template = ShippingTemplate.create(
            name=command.name,
            description=command.description,
            charge_type=command.charge_type,
            is_default=command.is_default,
            free_shipping_threshold=command.free_shipping_threshold,
            first_unit=command.first_unit,
            first_unit_fee=command.first_unit_fee,
            additional_unit=command.additional_unit,
            additional_unit_fee=command.additional_unit_fee,
        )
        repo.add(template)
        return str(template.id)

    @handle(AddShippingArea)
    def add_area(self, command):
        repo = current_domain.repository_for(ShippingTemplate)
        template = repo.get(command.template_id)
        area = template.add_area(
            province_name=command.province_name,
            city_name=command.city_name,
            area_name=command.area_name,
            province_code=command.province_code,
            city_code=command.city_code,
            area_code=command.area_code,
            is_deliverable=command.is_deliverable,
            first_unit=command.first_unit,
            first_unit_fee=command.first_unit_fee,
            additional_unit=command.additional_unit,
            additional_unit_fee=command.additional_unit_fee,
            free_shipping_threshold=command.free_shipping_threshold,
        )
        repo.add(template)
        return str(area.id)

    @handle(DeactivateShippingTemplate)
    def deactivate(self, command):
        repo = current_domain.repository_for(ShippingTemplate)
        template = repo.get(command.template_id)
        template.deactivate()
        repo.add(template)
