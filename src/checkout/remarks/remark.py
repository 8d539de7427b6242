"""Customer order remarks.

A remark is stored as an OrderExtendedInfo row after passing the content
moderator. Saving a new remark never overwrites an old one: the latest row is
the current remark and the older ones form its history.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from checkout.domain import checkout
from checkout.remarks import get_remark_moderator

logger = structlog.get_logger(__name__)

MAX_REMARK_LENGTH = 200
REMARK_INFO_TYPE = "remark"
REMARK_INFO_KEY = "customer_remark"


@checkout.aggregate
class OrderExtendedInfo:
    order_id = Identifier(required=True)
    info_type = String(required=True, max_length=50)
    info_key = String(required=True, max_length=100)
    info_value = Text()
    original_value = Text()
    is_filtered = Boolean(default=False)
    filtered_words = Text()  # Comma separated
    created_by = Identifier()
    created_at = DateTime()


class OrderRemarkService:
    def __init__(self, moderator=None, max_length: int = MAX_REMARK_LENGTH) -> None:
        self._moderator = moderator
        self.max_length = max_length

    @property
    def moderator(self):
        return self._moderator if self._moderator is not None else get_remark_moderator()

    def save_remark(self, order_id, remark: str, user_id=None) -> OrderExtendedInfo:
        text = (remark or "").strip()
        if not text:
            raise ValidationError({"remark": ["Remark cannot be empty"]})
        if len(text) > self.max_length:
            raise ValidationError({"remark": [f"Remark cannot exceed {self.max_length} characters"]})

        result = self.moderator.moderate(text)
        info = OrderExtendedInfo(
            order_id=str(order_id),
            info_type=REMARK_INFO_TYPE,
            info_key=REMARK_INFO_KEY,
            info_value=result.filtered_text,
            original_value=text,
            is_filtered=result.is_filtered,
            filtered_words=",".join(result.filtered_words) or None,
            created_by=str(user_id) if user_id else None,
            created_at=datetime.now(UTC),
        )
        current_domain.repository_for(OrderExtendedInfo).add(info)

        if result.is_filtered:
            logger.info("Order remark filtered", order_id=str(order_id), filtered_words=result.filtered_words)
        return info

    def remark_history(self, order_id) -> list[OrderExtendedInfo]:
        """All remarks for the order, oldest first."""
        repo = current_domain.repository_for(OrderExtendedInfo)
        infos = repo._dao.query.filter(
            order_id=str(order_id), info_type=REMARK_INFO_TYPE, info_key=REMARK_INFO_KEY
        ).all().items
        return sorted(infos, key=lambda info: info.created_at)

    def latest_remark(self, order_id) -> OrderExtendedInfo | None:
        history = self.remark_history(order_id)
        return history[-1] if history else None


@checkout.command(part_of="OrderExtendedInfo")
class SaveOrderRemark:
    order_id = Identifier(required=True)
    remark = Text(required=True)
    user_id = Identifier()


@checkout.command_handler(part_of=OrderExtendedInfo)
class OrderRemarkHandler:
    @handle(SaveOrderRemark)
    def save_remark(self, command):
        info = OrderRemarkService().save_remark(command.order_id, command.remark, command.user_id)
        return str(info.id)
