"""ORM records.  Importing this package registers every table on Base.metadata."""

from jewel_kernel.models.message_record import MessageRecord
from jewel_kernel.models.order_record import OrderRecord

__all__ = ["MessageRecord", "OrderRecord"]
