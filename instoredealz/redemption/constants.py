from datetime import timedelta

PIN_LENGTH = 4
PIN_SALT_BYTES = 16
DEFAULT_PIN_TTL = timedelta(days=90)
DEFAULT_ROTATION_INTERVAL = timedelta(minutes=30)

DEFAULT_ATTEMPT_WINDOW = timedelta(minutes=15)
DEFAULT_ATTEMPT_MAX_FAILURES = 5
DEFAULT_ATTEMPT_DAILY_LIMIT = 10
DAILY_ATTEMPT_WINDOW = timedelta(hours=24)

WEAK_PIN_SEQUENCES = ("1234", "4321", "0123", "3210")

MEMBERSHIP_TIERS: dict[str, int] = {
    "basic": 1,
    "premium": 2,
    "ultimate": 3,
}

ACTION_DEAL_CLAIMED_PENDING = "DEAL_CLAIMED_PENDING"
ACTION_DEAL_PIN_VERIFIED = "DEAL_PIN_VERIFIED"
ACTION_BILL_AMOUNT_UPDATED = "BILL_AMOUNT_UPDATED"
ACTION_DEAL_PIN_ISSUED = "DEAL_PIN_ISSUED"
