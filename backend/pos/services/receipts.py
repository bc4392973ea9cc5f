# pos/services/receipts.py
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_receipt_number(now: Optional[datetime] = None) -> str:
    """
    RCP<yyyymmdd><8 hex>. The uuid4 suffix makes every call unique.
    """
    now = now or datetime.now(timezone.utc)
    return f"RCP{now.strftime('%Y%m%d')}{uuid.uuid4().hex[:8].upper()}"


def generate_sku(name: str, now: Optional[datetime] = None) -> str:
    """Initials of the item name + 4 trailing digits of the epoch millis (e.g. 'Coca Cola' -> CC1234)."""
    now = now or datetime.now(timezone.utc)
    initials = "".join(word[0] for word in name.upper().split() if word)
    return f"{initials}{str(int(now.timestamp() * 1000))[-4:]}"
