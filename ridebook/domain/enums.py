"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.REQUESTED: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"

    @property
    def wire_value(self) -> str:
        """Name the backend expects in ``payment_method`` / ``method``."""
        return "stripe" if self is PaymentMethod.CARD else self.value


class VehicleClass(str, enum.Enum):
    STANDARD = "standard"
    PREMIUM = "premium"
    VAN = "van"
    BERLINE = "berline"
    BREAK = "break"


class BookingStage(str, enum.Enum):
    ESTIMATION = "estimation"
    CONFIRMATION = "confirmation"
    PAYMENT = "payment"
    COMPLETED = "completed"

    @property
    def order(self) -> int:
        return _STAGE_ORDER.index(self)


_STAGE_ORDER = [
    BookingStage.ESTIMATION,
    BookingStage.CONFIRMATION,
    BookingStage.PAYMENT,
    BookingStage.COMPLETED,
]


class UserRole(str, enum.Enum):
    PASSENGER = "passenger"
    DRIVER = "driver"
    ADMIN = "admin"


class ConfirmationState(str, enum.Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class EmailDispatch(str, enum.Enum):
    """Receipt e-mail progress on the payment return screen."""

    PENDING_EMAIL = "pending_email"
    SENT = "sent"
    RETRY_EXHAUSTED = "retry_exhausted"


class DriverAvailability(str, enum.Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


class ConfirmationFailure(str, enum.Enum):
    MISSING_SESSION = "missing_session"  # fatal, no retry
    UNREACHABLE = "unreachable"  # retry by reloading the return URL
    NOT_COMPLETED = "not_completed"  # rider must restart checkout
    REJECTED = "rejected"  # backend refused the confirmation
