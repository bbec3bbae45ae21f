"""
Session Domain Service.

Owns the table session lifecycle:

    get-or-create   at most one OPEN/LOCKED session per table, even when
                    two devices join an empty table at the same moment
    join            first guest becomes host, exactly once
    lock/unlock     OPEN ↔ LOCKED (LOCKED refuses joins, cart writes and
                    guest submissions)
    close           → EXPIRED, table FREE, open orders settled

Every change to a session row is recorded on the change-feed.
"""

import secrets

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from rest_api.models import CartItem, Guest, Order, StaffProfile, Table, TableSession
from rest_api.services.domain import order_state_machine
from rest_api.services.events import record_delete, record_insert, record_update
from shared.config.constants import (
    FeedTable,
    SessionCloseOutcome,
    SessionStatus,
    TableStatus,
    TableType,
    validate_session_transition,
)
from shared.config.logging import get_logger, mask_guest_name
from shared.infrastructure.db import safe_commit
from shared.utils.clock import utcnow
from shared.utils.exceptions import (
    DatabaseError,
    InvalidStateError,
    InvalidTransitionError,
    SessionNotFoundError,
    TableNotFoundError,
)
from shared.utils.schemas import GuestOutput, SessionOutput, StaffSessionOutput

logger = get_logger(__name__)


def new_table_token() -> str:
    """Unguessable token used in the table's QR URL."""
    return secrets.token_urlsafe(18)


class SessionService:
    """
    Domain service for table sessions and guests.
    """

    def __init__(self, db: Session):
        self._db = db

    # =========================================================================
    # Reads
    # =========================================================================

    def get_table_by_token(self, token: str) -> Table:
        table = self._db.scalar(select(Table).where(Table.token == token))
        if table is None:
            raise TableNotFoundError()
        return table

    def get_session(self, session_id: int) -> TableSession:
        session = self._db.scalar(
            select(TableSession)
            .where(TableSession.id == session_id)
            .options(selectinload(TableSession.guests), selectinload(TableSession.table))
        )
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def require_status(self, session: TableSession, *allowed: str) -> None:
        if session.status not in allowed:
            raise InvalidStateError(
                "Session", session.status, list(allowed), session_id=session.id
            )

    def _find_active_session(self, table_id: int) -> TableSession | None:
        return self._db.scalar(
            select(TableSession).where(
                TableSession.table_id == table_id,
                TableSession.status.in_(SessionStatus.ACTIVE),
            )
        )

    # =========================================================================
    # Get-or-create
    # =========================================================================

    def get_or_create_open_session(
        self,
        table: Table,
        opened_by_profile_id: int | None = None,
    ) -> TableSession:
        """
        Return the table's active session, creating it when there is none.

        The table row is locked first so concurrent callers queue up behind
        each other; if one still slips through, the partial unique index on
        active sessions rejects its insert and it re-reads the winner's
        session. Must be the first write of the caller's transaction.
        Commits.
        """
        table_id = table.id
        self._db.execute(select(Table.id).where(Table.id == table_id).with_for_update())

        existing = self._find_active_session(table_id)
        if existing is not None:
            return existing

        session = TableSession(
            table_id=table_id,
            status=SessionStatus.OPEN,
            opened_by_profile_id=opened_by_profile_id,
        )
        try:
            self._db.add(session)
            self._db.flush()
        except IntegrityError:
            self._db.rollback()
            winner = self._find_active_session(table_id)
            if winner is None:
                raise
            logger.info("Concurrent session create resolved", table_id=table_id, session_id=winner.id)
            return winner

        record_insert(self._db, FeedTable.SESSIONS, session)
        table = self._db.get(Table, table_id)
        table.status = TableStatus.OCCUPIED
        safe_commit(self._db)
        logger.info("Session opened", table_id=table_id, session_id=session.id)
        return session

    def join_table(self, token: str, guest_name: str) -> tuple[TableSession, Guest]:
        """
        Guest scans the QR code: get-or-create the session, register the
        guest and make them host if the session has none yet.

        Host assignment is a conditional UPDATE (`host_guest_id IS NULL`), so
        of two guests joining at once exactly one becomes host.
        """
        table = self.get_table_by_token(token)
        session = self.get_or_create_open_session(table)
        if session.status != SessionStatus.OPEN:
            raise InvalidStateError(
                "Session", session.status, [SessionStatus.OPEN], session_id=session.id
            )

        try:
            guest = Guest(session_id=session.id, name=guest_name.strip(), is_host=False)
            self._db.add(guest)
            self._db.flush()

            old = session.as_row()
            claimed = self._db.execute(
                update(TableSession)
                .where(TableSession.id == session.id, TableSession.host_guest_id.is_(None))
                .values(host_guest_id=guest.id)
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed == 1:
                guest.is_host = True
                self._db.refresh(session)
                record_update(self._db, FeedTable.SESSIONS, session, old)

            safe_commit(self._db)
        except SQLAlchemyError as e:
            self._db.rollback()
            raise DatabaseError("join table", session_id=session.id) from e

        logger.info(
            "Guest joined",
            session_id=session.id,
            guest_id=guest.id,
            guest=mask_guest_name(guest.name),
            is_host=guest.is_host,
        )
        return self.get_session(session.id), guest

    # =========================================================================
    # Staff sessions
    # =========================================================================

    def get_or_create_counter_session(self, profile: StaffProfile) -> TableSession:
        """The profile's counter table and its active session (both idempotent)."""
        table = self._db.scalar(
            select(Table).where(
                Table.table_type == TableType.COUNTER,
                Table.owner_profile_id == profile.id,
            )
        )
        if table is None:
            table = Table(
                name=f"Balcão {profile.name}",
                token=new_table_token(),
                table_type=TableType.COUNTER,
                owner_profile_id=profile.id,
            )
            try:
                self._db.add(table)
                safe_commit(self._db)
            except IntegrityError:
                table = self._db.scalar(
                    select(Table).where(
                        Table.table_type == TableType.COUNTER,
                        Table.owner_profile_id == profile.id,
                    )
                )
                if table is None:
                    raise
            logger.info("Counter table ready", profile_id=profile.id, table_id=table.id)

        return self.get_or_create_open_session(table, opened_by_profile_id=profile.id)

    def create_waiter_virtual_session(self, profile: StaffProfile, name: str | None = None) -> TableSession:
        """A fresh virtual table with an open session, for a tab without a physical table."""
        count = self._db.scalar(
            select(Table.id).where(Table.table_type == TableType.VIRTUAL).order_by(Table.id.desc()).limit(1)
        )
        table = Table(
            name=(name or "").strip() or f"Comanda {(count or 0) + 1}",
            token=new_table_token(),
            table_type=TableType.VIRTUAL,
            owner_profile_id=profile.id,
        )
        self._db.add(table)
        safe_commit(self._db)
        logger.info("Virtual table created", profile_id=profile.id, table_id=table.id)
        return self.get_or_create_open_session(table, opened_by_profile_id=profile.id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _lock_session_row(self, session_id: int) -> TableSession:
        session = self._db.scalar(
            select(TableSession).where(TableSession.id == session_id).with_for_update()
        )
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _set_status(self, session: TableSession, target: str) -> None:
        if not validate_session_transition(session.status, target):
            raise InvalidTransitionError("session", session.status, target, session_id=session.id)
        old = session.as_row()
        session.status = target
        if target == SessionStatus.EXPIRED:
            session.closed_at = utcnow()
        record_update(self._db, FeedTable.SESSIONS, session, old)

    def lock_session(self, session_id: int) -> TableSession:
        session = self._lock_session_row(session_id)
        self._set_status(session, SessionStatus.LOCKED)
        safe_commit(self._db)
        logger.info("Session locked", session_id=session_id)
        return self.get_session(session_id)

    def unlock_session(self, session_id: int) -> TableSession:
        session = self._lock_session_row(session_id)
        self._set_status(session, SessionStatus.OPEN)
        safe_commit(self._db)
        logger.info("Session unlocked", session_id=session_id)
        return self.get_session(session_id)

    def expire(self, session: TableSession, outcome: str) -> None:
        """
        Close out a session inside the caller's transaction: settle its
        open orders, drop leftover cart lines, EXPIRE it and free the table.
        """
        orders = self._db.scalars(
            select(Order).where(Order.session_id == session.id).order_by(Order.id)
        ).all()
        for order in orders:
            old = order.as_row()
            if order_state_machine.close_out(order, outcome):
                record_update(self._db, FeedTable.ORDERS, order, old)

        leftovers = self._db.scalars(
            select(CartItem).where(CartItem.session_id == session.id)
        ).all()
        for line in leftovers:
            record_delete(self._db, FeedTable.CART_ITEMS, line)
            self._db.delete(line)

        self._set_status(session, SessionStatus.EXPIRED)
        table = self._db.get(Table, session.table_id)
        table.status = TableStatus.FREE

    def close_session(self, session_id: int, outcome: str = SessionCloseOutcome.FINISH) -> TableSession:
        """Staff closes out the table (FINISH or CANCEL)."""
        session = self._lock_session_row(session_id)
        try:
            self.expire(session, outcome)
            safe_commit(self._db)
        except SQLAlchemyError as e:
            self._db.rollback()
            raise DatabaseError("close session", session_id=session_id) from e
        logger.info("Session closed", session_id=session_id, outcome=outcome)
        return self.get_session(session_id)

    # =========================================================================
    # Outputs
    # =========================================================================

    @staticmethod
    def to_output(session: TableSession) -> SessionOutput:
        return SessionOutput(
            id=session.id,
            table_id=session.table_id,
            table_name=session.table.name,
            status=session.status,
            host_guest_id=session.host_guest_id,
            created_at=session.created_at,
            closed_at=session.closed_at,
            guests=[GuestOutput.model_validate(g) for g in session.guests],
        )

    @staticmethod
    def to_staff_output(session: TableSession) -> StaffSessionOutput:
        base = SessionService.to_output(session)
        return StaffSessionOutput(
            **base.model_dump(),
            table_type=session.table.table_type,
            table_token=session.table.token,
        )
