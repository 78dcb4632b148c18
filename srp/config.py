import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR.parent / 'srp.db'}")

JWT_SECRET = os.getenv("JWT_SECRET", "your_really_long_secret_key")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5000").split(",")
    if origin.strip()
]

STATIC_DATA_DIR = Path(os.getenv("STATIC_DATA_DIR", BASE_DIR / "static_data"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Seat user ids that get the admin role the first time their role is looked up
ADMIN_SEAT_USER_IDS = {
    int(value)
    for value in os.getenv("ADMIN_SEAT_USER_IDS", "").split(",")
    if value.strip().isdigit()
}


@dataclass(frozen=True)
class PayoutPolicy:
    """Multipliers and the global ceiling used by the payout calculator."""

    full_rate: Decimal = Decimal("1.0")
    fleet_rate: Decimal = Decimal("0.5")
    solo_rate: Decimal = Decimal("0.25")
    default_max_payout: Decimal = Decimal("5000000000")

    @classmethod
    def from_env(cls) -> "PayoutPolicy":
        defaults = cls()
        return cls(
            full_rate=Decimal(os.getenv("SRP_FULL_RATE", str(defaults.full_rate))),
            fleet_rate=Decimal(os.getenv("SRP_FLEET_RATE", str(defaults.fleet_rate))),
            solo_rate=Decimal(os.getenv("SRP_SOLO_RATE", str(defaults.solo_rate))),
            default_max_payout=Decimal(
                os.getenv("SRP_DEFAULT_MAX_PAYOUT", str(defaults.default_max_payout))
            ),
        )


def get_payout_policy() -> PayoutPolicy:
    return PayoutPolicy.from_env()
