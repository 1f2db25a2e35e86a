from instoredealz.db.models.deal_claims import DealClaim
from instoredealz.db.models.deals import Deal
from instoredealz.db.models.pin_attempts import PinAttempt
from instoredealz.db.models.system_logs import SystemLog
from instoredealz.db.models.users import User
from instoredealz.db.models.vendors import Vendor

__all__ = [
    "Deal",
    "DealClaim",
    "PinAttempt",
    "SystemLog",
    "User",
    "Vendor",
]
