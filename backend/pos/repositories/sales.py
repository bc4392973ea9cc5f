"""
pos/repositories/sales.py - Firestore persistence collaborator for completed sales.

`save()` writes one sale as a single atomic write batch:
  (a) transactions/{id}
  (b) transactionItems/* - one per line
  (c) payments/*         - one per tender
  (d) items/{itemId}.stock -= quantity
Either every write lands or none does. History reads join the three collections
back into `FinalizedTransaction` records for reporting.
"""
import logging
from datetime import datetime, timezone
from decimal import InvalidOperation
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import GoogleAPIError
from google.cloud import firestore as gcf
from google.cloud.firestore_v1 import SERVER_TIMESTAMP, FieldFilter
from pydantic import ValidationError

from pos.config import collection_name, get_db
from pos.core.errors import PersistenceFailure
from pos.core.money import DiscountType, round_money, to_decimal
from pos.schemas.transaction import FinalizedLine, FinalizedTransaction, TenderEntry

logger = logging.getLogger("pos.sales")

TRANSACTIONS = "transactions"
TRANSACTION_ITEMS = "transactionItems"
PAYMENTS = "payments"
ITEMS = "items"

# Firestore rejects batches with more than 500 writes
MAX_BATCH_WRITES = 500


def _money(value) -> float:
    return float(round_money(value))


def _as_utc(value: Any) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def batch_size_for(txn: FinalizedTransaction) -> int:
    return 1 + 2 * len(txn.lines) + len(txn.tenders)


class SaleRepository:
    def __init__(self, owner_id: str, db=None):
        self.owner_id = owner_id
        self.db = db if db is not None else get_db()

    def _col(self, name: str):
        return self.db.collection(collection_name(name))

    # ---------- write ----------

    def save(self, txn: FinalizedTransaction) -> str:
        """Persist a finalized sale and decrement stock. Returns the transaction id."""
        writes = batch_size_for(txn)
        if writes > MAX_BATCH_WRITES:
            raise PersistenceFailure(
                f"Sale needs {writes} writes; one atomic batch allows {MAX_BATCH_WRITES}"
            )

        batch = self.db.batch()
        txn_ref = self._col(TRANSACTIONS).document()
        batch.set(txn_ref, {
            "userId": self.owner_id,
            "cashierId": txn.cashier_id,
            "receiptNumber": txn.receipt_number,
            "itemCount": txn.item_count,
            "subtotal": _money(txn.subtotal),
            "discount": float(txn.discount_value),
            "discountType": txn.discount_type.value,
            "discountAmount": _money(txn.discount_amount),
            "taxRate": float(txn.tax_rate),
            "tax": _money(txn.tax_amount),
            "total": _money(txn.grand_total),
            "totalTendered": _money(txn.total_tendered),
            "change": _money(txn.change_due),
            "status": "completed",
            "createdAt": txn.completed_at,
            "serverCreatedAt": SERVER_TIMESTAMP,
        })

        for line in txn.lines:
            batch.set(self._col(TRANSACTION_ITEMS).document(), {
                "transactionId": txn_ref.id,
                "userId": self.owner_id,
                "itemId": line.item_id,
                "itemName": line.name,
                "sku": line.sku,
                "categoryName": line.category_name,
                "quantity": line.quantity,
                "price": float(line.unit_price),
                "lineTotal": _money(line.line_total),
                # tax is computed once for the whole sale
                "tax": 0.0,
                "createdAt": txn.completed_at,
            })
            batch.update(self._col(ITEMS).document(line.item_id), {
                "stock": gcf.Increment(-line.quantity),
                "updatedAt": SERVER_TIMESTAMP,
            })

        for tender in txn.tenders:
            batch.set(self._col(PAYMENTS).document(), {
                "transactionId": txn_ref.id,
                "userId": self.owner_id,
                "method": tender.method,
                "amount": _money(tender.amount),
                "createdAt": txn.completed_at,
            })

        try:
            batch.commit()
        except GoogleAPIError as exc:
            logger.exception("Sale %s could not be written", txn.receipt_number)
            raise PersistenceFailure(f"Failed to record transaction: {exc}") from exc

        logger.info(
            "Recorded sale %s as %s (%s lines, total %s)",
            txn.receipt_number, txn_ref.id, len(txn.lines), _money(txn.grand_total),
        )
        return txn_ref.id

    # ---------- read ----------

    def list_transactions(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[FinalizedTransaction]:
        """
        Completed sales of this owner between start and end (inclusive), newest first,
        at most `limit` of them. Needs the composite index (userId ASC, createdAt DESC).
        """
        start, end = _as_utc(start), _as_utc(end)
        query = self._col(TRANSACTIONS).where(filter=FieldFilter("userId", "==", self.owner_id))
        if start:
            query = query.where(filter=FieldFilter("createdAt", ">=", start))
        if end:
            query = query.where(filter=FieldFilter("createdAt", "<=", end))
        query = query.order_by("createdAt", direction=gcf.Query.DESCENDING).limit(limit)
        try:
            snaps = list(query.stream())
        except GoogleAPIError as exc:
            logger.exception("Transaction history query failed")
            raise PersistenceFailure(f"Failed to load transactions: {exc}") from exc

        out: List[FinalizedTransaction] = []
        for snap in snaps:
            data = snap.to_dict() or {}
            created = _as_utc(data.get("createdAt"))
            if created is None:
                logger.debug("Skip transaction %s without createdAt", snap.id)
                continue
            if (start and created < start) or (end and created > end):
                continue
            txn = self._load(snap.id, data, created)
            if txn is not None:
                out.append(txn)
        out.sort(key=lambda t: t.completed_at, reverse=True)
        return out

    def _children(self, name: str, transaction_id: str) -> List[Dict[str, Any]]:
        try:
            return [
                s.to_dict() or {}
                for s in self._col(name)
                .where(filter=FieldFilter("transactionId", "==", transaction_id))
                .stream()
            ]
        except GoogleAPIError as exc:
            logger.exception("Loading %s for %s failed", name, transaction_id)
            raise PersistenceFailure(f"Failed to load {name}: {exc}") from exc

    def _load(self, transaction_id: str, data: Dict[str, Any], created: datetime) -> Optional[FinalizedTransaction]:
        items = self._children(TRANSACTION_ITEMS, transaction_id)
        payments = self._children(PAYMENTS, transaction_id)
        try:
            lines = tuple(
                FinalizedLine(
                    item_id=it.get("itemId", ""),
                    name=it.get("itemName", "") or "",
                    sku=it.get("sku", "") or "",
                    unit_price=to_decimal(it.get("price", 0)),
                    quantity=int(it.get("quantity", 1)),
                    line_total=to_decimal(it.get("lineTotal", to_decimal(it.get("price", 0)) * int(it.get("quantity", 1)))),
                    category_name=it.get("categoryName"),
                )
                for it in items
            )
            tenders = tuple(
                TenderEntry(method=p.get("method") or "unknown", amount=to_decimal(p.get("amount", 0)))
                for p in payments
                if to_decimal(p.get("amount", 0)) > 0
            )
            total = to_decimal(data.get("total", 0))
            tendered = to_decimal(data.get("totalTendered", sum((t.amount for t in tenders), to_decimal(0))))
            return FinalizedTransaction(
                transaction_id=transaction_id,
                receipt_number=data.get("receiptNumber", "") or "",
                completed_at=created,
                cashier_id=data.get("cashierId"),
                lines=lines,
                item_count=int(data.get("itemCount", sum(line.quantity for line in lines))),
                subtotal=to_decimal(data.get("subtotal", 0)),
                discount_type=DiscountType(data.get("discountType", "amount")),
                discount_value=to_decimal(data.get("discount", 0)),
                discount_amount=to_decimal(data.get("discountAmount", 0)),
                tax_rate=to_decimal(data.get("taxRate", 0)),
                tax_amount=to_decimal(data.get("tax", 0)),
                grand_total=total,
                tenders=tenders,
                total_tendered=tendered,
                change_due=to_decimal(data.get("change", max(to_decimal(0), tendered - total))),
            )
        except (ValidationError, ValueError, TypeError, InvalidOperation) as exc:
            logger.debug("Skip malformed transaction %s: %s", transaction_id, exc)
            return None
