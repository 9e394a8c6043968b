from enum import Enum

from src.domain.exceptions import ValidationError


class SeatStatus(str, Enum):
    SELECTED = "selected"
    BOOKED = "booked"


class PointType(str, Enum):
    EARN = "earn"
    REDEEM = "redeem"


class PaymentMethod(str, Enum):
    QRIS = "qris"
    E_WALLET = "e_wallet"
    BANK_TRANSFER = "bank_transfer"

    @classmethod
    def parse(cls, raw: "str | PaymentMethod | None") -> "PaymentMethod":
        if raw is None or raw == "":
            raise ValidationError("Payment method is required")
        if isinstance(raw, PaymentMethod):
            return raw

        normalized = raw.strip().lower().replace("-", "_")
        aliases = {
            "qris": cls.QRIS,
            "e_wallet": cls.E_WALLET,
            "ewallet": cls.E_WALLET,
            "bank_transfer": cls.BANK_TRANSFER,
            "banktransfer": cls.BANK_TRANSFER,
        }
        try:
            return aliases[normalized]
        except KeyError:
            raise ValidationError(f"Invalid payment method: {raw}") from None
