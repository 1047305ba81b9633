"""Coupon administration commands."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from orders.coupon.coupon import Coupon
from orders.domain import orders
from orders.pricing.engine import DiscountType

logger = structlog.get_logger(__name__)


@orders.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    description = String(max_length=255)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    min_purchase_amount = Float(min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    usage_limit = Integer(min_value=0)
    usage_limit_per_user = Integer(default=1, min_value=0)
    valid_from = DateTime()
    valid_until = DateTime()


@orders.command(part_of="Coupon")
class DeactivateCoupon:
    coupon_id = Identifier(required=True)


@orders.command_handler(part_of=Coupon)
class ManageCouponsHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": [f"Coupon {command.code.upper()} already exists"]})

        coupon = Coupon.create(
            code=command.code,
            description=command.description,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            min_purchase_amount=command.min_purchase_amount,
            max_discount_amount=command.max_discount_amount,
            usage_limit=command.usage_limit,
            usage_limit_per_user=command.usage_limit_per_user,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
        )
        repo.add(coupon)
        logger.info("coupon_created", code=coupon.code, discount_type=coupon.discount_type)
        return str(coupon.id)

    @handle(DeactivateCoupon)
    def deactivate_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(command.coupon_id)
        coupon.deactivate()
        repo.add(coupon)
