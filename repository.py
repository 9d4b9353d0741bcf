"""Persistence gateway for transaction rows.

The engine only talks to :class:`TransactionRepository`. Two implementations
ship with it: :class:`SqlTransactionRepository` on top of a SQLAlchemy session
and :class:`InMemoryTransactionRepository`, a dict-backed store with the same
contract, used where no database is wanted.

Results are always ordered newest first (date descending, id descending).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterator, Optional, Protocol, Sequence

from sqlalchemy import and_, func, not_, select
from sqlalchemy.orm import Session

from models import Transaction, TransactionType

logger = logging.getLogger(__name__)


@dataclass
class TransactionFilter:
    user_id: int
    start: Optional[date] = None
    end: Optional[date] = None
    type: Optional[TransactionType] = None
    is_fixed: Optional[bool] = None
    # True keeps only fixed origins, False drops them, None ignores the flag.
    fixed_origin: Optional[bool] = None
    include_hidden: bool = False

    def matches(self, txn: Transaction) -> bool:
        if txn.user_id != self.user_id:
            return False
        if self.start is not None and txn.date < self.start:
            return False
        if self.end is not None and txn.date > self.end:
            return False
        if self.type is not None and txn.type != self.type:
            return False
        if self.is_fixed is not None and bool(txn.is_fixed) != self.is_fixed:
            return False
        if (
            self.fixed_origin is not None
            and txn.is_fixed_origin != self.fixed_origin
        ):
            return False
        if not self.include_hidden and txn.is_hidden:
            return False
        return True


class TransactionRepository(Protocol):
    def find_by_id(
        self, transaction_id: int, user_id: int
    ) -> Optional[Transaction]: ...

    def find(
        self,
        flt: TransactionFilter,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Transaction]: ...

    def count(self, flt: TransactionFilter) -> int: ...

    def find_and_count(
        self,
        flt: TransactionFilter,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[list[Transaction], int]: ...

    def create(self, txn: Transaction) -> Transaction: ...

    def save(self, txn: Transaction) -> Transaction: ...

    def save_all(self, txns: Sequence[Transaction]) -> list[Transaction]: ...

    def remove(self, txn: Transaction) -> None: ...

    def atomic(self): ...


class SqlTransactionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session
        self._depth = 0

    def _conditions(self, flt: TransactionFilter) -> list:
        conditions = [Transaction.user_id == flt.user_id]
        if flt.start is not None:
            conditions.append(Transaction.date >= flt.start)
        if flt.end is not None:
            conditions.append(Transaction.date <= flt.end)
        if flt.type is not None:
            conditions.append(Transaction.type == flt.type)
        if flt.is_fixed is not None:
            conditions.append(Transaction.is_fixed.is_(flt.is_fixed))
        if flt.fixed_origin is not None:
            origin = and_(
                Transaction.is_fixed.is_(True), Transaction.origin_id.is_(None)
            )
            conditions.append(origin if flt.fixed_origin else not_(origin))
        if not flt.include_hidden:
            conditions.append(Transaction.is_hidden.is_(False))
        return conditions

    def find_by_id(self, transaction_id: int, user_id: int) -> Optional[Transaction]:
        stmt = select(Transaction).where(
            Transaction.id == transaction_id, Transaction.user_id == user_id
        )
        return self.session.scalar(stmt)

    def find(
        self,
        flt: TransactionFilter,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(*self._conditions(flt))
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).all())

    def count(self, flt: TransactionFilter) -> int:
        stmt = select(func.count(Transaction.id)).where(*self._conditions(flt))
        return int(self.session.execute(stmt).scalar_one() or 0)

    def find_and_count(
        self,
        flt: TransactionFilter,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[list[Transaction], int]:
        return self.find(flt, offset=offset, limit=limit), self.count(flt)

    def create(self, txn: Transaction) -> Transaction:
        self.session.add(txn)
        self.session.flush()
        return txn

    def save(self, txn: Transaction) -> Transaction:
        self.session.add(txn)
        self.session.flush()
        return txn

    def save_all(self, txns: Sequence[Transaction]) -> list[Transaction]:
        self.session.add_all(txns)
        self.session.flush()
        return list(txns)

    def remove(self, txn: Transaction) -> None:
        self.session.delete(txn)
        self.session.flush()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        # Nested blocks join the outermost one, which commits or rolls back.
        if self._depth:
            yield
            return
        self._depth += 1
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._depth -= 1


_COLUMNS = [column.key for column in Transaction.__table__.columns]


def _column_state(txn: Transaction) -> dict[str, object]:
    return {key: getattr(txn, key) for key in _COLUMNS}


class InMemoryTransactionRepository:
    def __init__(self) -> None:
        self._rows: dict[int, Transaction] = {}
        self._next_id = 1
        self._depth = 0

    def find_by_id(self, transaction_id: int, user_id: int) -> Optional[Transaction]:
        txn = self._rows.get(transaction_id)
        if txn is None or txn.user_id != user_id:
            return None
        return txn

    def find(
        self,
        flt: TransactionFilter,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        rows = [txn for txn in self._rows.values() if flt.matches(txn)]
        rows.sort(key=lambda txn: (txn.date, txn.id), reverse=True)
        if limit is None:
            return rows[offset:]
        return rows[offset : offset + limit]

    def count(self, flt: TransactionFilter) -> int:
        return sum(1 for txn in self._rows.values() if flt.matches(txn))

    def find_and_count(
        self,
        flt: TransactionFilter,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[list[Transaction], int]:
        return self.find(flt, offset=offset, limit=limit), self.count(flt)

    def create(self, txn: Transaction) -> Transaction:
        if txn.id is None:
            txn.id = self._next_id
        self._next_id = max(self._next_id, txn.id + 1)
        for flag in ("is_fixed", "is_installment", "is_hidden"):
            if getattr(txn, flag) is None:
                setattr(txn, flag, False)
        now = datetime.utcnow()
        if txn.created_at is None:
            txn.created_at = now
        txn.updated_at = now
        self._rows[txn.id] = txn
        return txn

    def save(self, txn: Transaction) -> Transaction:
        if txn.id is None or txn.id not in self._rows:
            return self.create(txn)
        txn.updated_at = datetime.utcnow()
        self._rows[txn.id] = txn
        return txn

    def save_all(self, txns: Sequence[Transaction]) -> list[Transaction]:
        return [self.save(txn) for txn in txns]

    def remove(self, txn: Transaction) -> None:
        self._rows.pop(txn.id, None)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._depth:
            yield
            return
        snapshot = {
            txn_id: (txn, _column_state(txn)) for txn_id, txn in self._rows.items()
        }
        next_id = self._next_id
        self._depth += 1
        try:
            yield
        except Exception:
            logger.debug(f"in_memory_rollback: rows={len(snapshot)}")
            for txn, state in snapshot.values():
                for key, value in state.items():
                    setattr(txn, key, value)
            self._rows = {txn_id: txn for txn_id, (txn, _) in snapshot.items()}
            self._next_id = next_id
            raise
        finally:
            self._depth -= 1
