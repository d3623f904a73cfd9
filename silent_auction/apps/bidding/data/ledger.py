"""
Persistent ledger access

All writes to the bid ledger happen inside an atomic scope. Writers on the same lot are serialized twice:
- by an in-process keyed lock, which bounds the wait and keeps SQLite (no row locks) correct
- by `SELECT ... FOR UPDATE` on the lot row, which serializes writers across processes on PostgreSQL

Writers on different lots never share a lock.
"""
from contextlib import contextmanager, ExitStack
from datetime import timedelta
from threading import Lock
from typing import Iterator, Iterable
from weakref import WeakValueDictionary

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session

from silent_auction.apps.bidding.data.auction import TLot, TAuction
from silent_auction.apps.bidding.domain.auction import LotId, AuctionId

# PostgreSQL SQLSTATE for lock_not_available
_PG_LOCK_NOT_AVAILABLE = "55P03"


class LockTimeoutError(Exception):
    """
    The lot lock could not be acquired within the configured timeout
    """

    def __init__(self, lot_id: LotId):
        super().__init__(f"timed out waiting for lot lock: {lot_id}")
        self.lot_id = lot_id


class LotLocks:
    """
    Keyed locks, one per lot. Lock instances are only retained while some thread holds or awaits them.
    """

    def __init__(self):
        self._locks: WeakValueDictionary[LotId, Lock] = WeakValueDictionary()
        self._guard = Lock()

    def _get(self, lot_id: LotId) -> Lock:
        with self._guard:
            lock = self._locks.get(lot_id)
            if lock is None:
                lock = Lock()
                self._locks[lot_id] = lock
            return lock

    @contextmanager
    def hold(self, lot_id: LotId, timeout: timedelta) -> Iterator[None]:
        """
        :exception LockTimeoutError: if the lock is not acquired within the timeout
        """
        lock = self._get(lot_id)
        if not lock.acquire(timeout=timeout.total_seconds()):
            raise LockTimeoutError(lot_id)
        try:
            yield
        finally:
            lock.release()


class Ledger:
    """
    Provides the atomic read-lock-write primitive over the auction, lot, and bid tables
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        lock_timeout: timedelta = timedelta(seconds=5),
    ):
        self.session_factory = session_factory
        self.lock_timeout = lock_timeout
        self._lot_locks = LotLocks()

    def session(self) -> Session:
        """
        Read-only access. Projections read through this session never feed a write decision.
        """
        return self.session_factory()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Plain atomic scope without lot locks, e.g., for guarded lifecycle transitions.
        The transaction commits when the block exits normally and rolls back on any exception.
        """
        with self.session_factory.begin() as session:
            yield session

    @contextmanager
    def lot_scope(self, lot_id: LotId) -> Iterator[tuple[Session, TLot | None]]:
        """
        Atomic scope holding the lot lock for its full duration.

        Yields the session and the row-locked lot, which is None if the lot does not exist.

        :exception LockTimeoutError: if the lock cannot be acquired within `lock_timeout`
        """
        with self._lot_locks.hold(lot_id, self.lock_timeout):
            with self._locked_transaction(lot_id) as session:
                lot = session.scalars(
                    select(TLot).where(TLot.lot_id == lot_id).with_for_update()
                ).one_or_none()
                yield session, lot

    @contextmanager
    def auction_scope(
        self,
        auction_id: AuctionId,
        lot_ids: Iterable[LotId],
    ) -> Iterator[tuple[Session, TAuction | None, list[TLot]]]:
        """
        Atomic scope holding the locks for all the specified lots plus a row lock on the auction.

        Lots are locked in lot ID order, which prevents deadlocks between concurrent auction scopes.
        The auction row is locked after the lots because bid writers hold a lot lock while updating the auction.
        """
        ordered_lot_ids = sorted(set(lot_ids))
        with ExitStack() as stack:
            for lot_id in ordered_lot_ids:
                stack.enter_context(self._lot_locks.hold(lot_id, self.lock_timeout))
            with self._locked_transaction(
                ordered_lot_ids[0] if ordered_lot_ids else None
            ) as session:
                lots = list(
                    session.scalars(
                        select(TLot)
                        .where(TLot.lot_id.in_(ordered_lot_ids))
                        .order_by(TLot.lot_id)
                        .with_for_update()
                    )
                )
                auction = session.scalars(
                    select(TAuction)
                    .where(TAuction.auction_id == auction_id)
                    .with_for_update()
                ).one_or_none()
                yield session, auction, lots

    @contextmanager
    def _locked_transaction(self, lot_id: LotId | None) -> Iterator[Session]:
        try:
            with self.session_factory.begin() as session:
                if session.get_bind().dialect.name == "postgresql":
                    # bound the row lock wait the same way as the in-process lock wait
                    lock_timeout_ms = int(self.lock_timeout.total_seconds() * 1000)
                    session.execute(text(f"SET LOCAL lock_timeout = {lock_timeout_ms}"))
                yield session
        except OperationalError as err:
            sqlstate = getattr(err.orig, "pgcode", None) or getattr(
                err.orig, "sqlstate", None
            )
            if sqlstate == _PG_LOCK_NOT_AVAILABLE and lot_id is not None:
                raise LockTimeoutError(lot_id) from err
            raise
