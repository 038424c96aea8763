"""
Typed Exception Hierarchy for the Jewel Kernel.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes
carrying the data that caused it.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    JewelKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidItemError
    |   +-- InvalidRateError
    |   +-- InvalidPlanError
    |   +-- InvalidPaymentError
    |   +-- InvalidSettingsError
    |
    +-- OrderError
    |   +-- OrderNotFoundError
    |   +-- OrderAlreadyExistsError
    |   +-- OrderClosedError
    |   +-- InvalidOrderTransitionError
    |
    +-- ProtectionError
    |   +-- ProtectionNotLapsedError
    |
    +-- ScheduleIntegrityError
    |
    +-- MessagingError
        +-- MessageSendError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_ITEM                | Weight <= 0, negative charges, bad purity
                | INVALID_RATE                | Market rate or purity factor <= 0
                | INVALID_PLAN                | months < 1, advance outside 0..100
                | INVALID_PAYMENT             | Amount <= 0
                | INVALID_SETTINGS            | Missing/invalid configuration values
----------------|-----------------------------|-----------------------------------------
Order           | ORDER_NOT_FOUND             | Order ID not in the order book
                | ORDER_ALREADY_EXISTS        | Duplicate order ID on add
                | ORDER_CLOSED                | Mutating a CANCELLED/DELIVERED order
                | INVALID_ORDER_TRANSITION    | e.g. handover before full payment
----------------|-----------------------------|-----------------------------------------
Protection      | PROTECTION_NOT_LAPSED       | Accepting a new rate on a protected order
----------------|-----------------------------|-----------------------------------------
Schedule        | SCHEDULE_INTEGRITY          | Milestones do not sum to the payable total
----------------|-----------------------------|-----------------------------------------
Messaging       | MESSAGE_SEND_FAILED         | Transport reported failure

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation errors block order submission and carry the offending field:

    except InvalidItemError as e:
        show_form_error(e.field, str(e))

2. Messaging errors are logged and surfaced as a retryable notice; they
   never reverse a state transition that was already committed.

3. ScheduleIntegrityError is a programming defect. It is raised, never
   caught inside the core.
"""


class JewelKernelError(Exception):
    """
    Base exception for all jewel kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "JEWEL_KERNEL_ERROR"


# Validation exceptions


class ValidationError(JewelKernelError):
    """Base exception for input validation failures."""

    code: str = "VALIDATION_ERROR"


class InvalidItemError(ValidationError):
    """Jewelry item inputs cannot be priced for a committed order."""

    code: str = "INVALID_ITEM"

    def __init__(self, item_id: str, field: str, reason: str):
        self.item_id = item_id
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid item {item_id}: {field} {reason}")


class InvalidRateError(ValidationError):
    """Market rate or purity factor is missing, zero or negative."""

    code: str = "INVALID_RATE"

    def __init__(self, name: str, value: object):
        self.name = name
        self.value = str(value)
        super().__init__(f"Invalid rate {name}: {value}")


class InvalidPlanError(ValidationError):
    """Payment plan shape is not usable."""

    code: str = "INVALID_PLAN"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid plan {field}={value}: {reason}")


class InvalidPaymentError(ValidationError):
    """Payment amount is not acceptable."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, order_id: str, amount: object, reason: str):
        self.order_id = order_id
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Invalid payment of {amount} on {order_id}: {reason}")


class InvalidSettingsError(ValidationError):
    """Shop settings are missing a value or carry an invalid one."""

    code: str = "INVALID_SETTINGS"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid setting {key}: {reason}")


# Order exceptions


class OrderError(JewelKernelError):
    """Base exception for order aggregate errors."""

    code: str = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class OrderAlreadyExistsError(OrderError):
    """Order with given ID already exists."""

    code: str = "ORDER_ALREADY_EXISTS"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order already exists: {order_id}")


class OrderClosedError(OrderError):
    """Order is CANCELLED or DELIVERED and accepts no further changes."""

    code: str = "ORDER_CLOSED"

    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is {status}")


class InvalidOrderTransitionError(OrderError):
    """Requested order status change is not allowed from the current state."""

    code: str = "INVALID_ORDER_TRANSITION"

    def __init__(self, order_id: str, from_status: str, to_status: str, reason: str = ""):
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Order {order_id} cannot move {from_status} -> {to_status}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


# Protection exceptions


class ProtectionError(JewelKernelError):
    """Base exception for rate-protection errors."""

    code: str = "PROTECTION_ERROR"


class ProtectionNotLapsedError(ProtectionError):
    """A new rate was offered while the booked rate is still protected."""

    code: str = "PROTECTION_NOT_LAPSED"

    def __init__(self, order_id: str, protection_status: str):
        self.order_id = order_id
        self.protection_status = protection_status
        super().__init__(
            f"Order {order_id} protection is {protection_status}, not LAPSED"
        )


# Schedule exceptions


class ScheduleIntegrityError(JewelKernelError):
    """Generated milestones do not add up to the payable total."""

    code: str = "SCHEDULE_INTEGRITY"

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Schedule sums to {actual}, expected {expected}")


# Messaging exceptions


class MessagingError(JewelKernelError):
    """Base exception for outbound messaging errors."""

    code: str = "MESSAGING_ERROR"


class MessageSendError(MessagingError):
    """The transport could not deliver a message."""

    code: str = "MESSAGE_SEND_FAILED"

    def __init__(self, contact: str, reason: str):
        self.contact = contact
        self.reason = reason
        super().__init__(f"Send to {contact} failed: {reason}")
