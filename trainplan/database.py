"""
SQLAlchemy Database Models for Training Planner

Provides persistent storage for:
- Plan records (generation status, active flag, accepted plan JSON)
- Materialized session rows for each plan

Session rows are replaced delete-then-insert. A user's previous plan is only
deactivated once the new plan is ready.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    create_engine,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from trainplan.errors import PersistenceError
from trainplan.plan_schemas import GeneratedPlan, SessionRow
from trainplan.schemas import AthleteProfile, SessionStatus, Sport

Base = declarative_base()

PLAN_PENDING = "pending"
PLAN_READY = "ready"
PLAN_FAILED = "failed"


class PlanRecord(Base):
    """
    A plan generation job and its result.

    Attributes:
        id: Primary key (uuid string)
        user_id: Athlete identifier
        status: 'pending', 'ready' or 'failed'
        is_active: Whether this is the athlete's current plan
        race_type: Free-form race label from the profile
        race_date: Target race date
        plan_start_date: Monday the plan starts (set when ready)
        total_weeks: Plan length (set when ready)
        profile_data: Submitted AthleteProfile as JSON
        plan_data: Accepted GeneratedPlan as JSON
        error: Failure summary when status is 'failed'
        created_at: When the job was created
        updated_at: Last status change
    """

    __tablename__ = "plans"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(String, nullable=False, index=True)
    status = Column(String, default=PLAN_PENDING, nullable=False, index=True)
    is_active = Column(Boolean, default=False, nullable=False, index=True)
    race_type = Column(String, nullable=False)
    race_date = Column(Date, nullable=False)
    plan_start_date = Column(Date, nullable=True)
    total_weeks = Column(Integer, nullable=True)
    profile_data = Column(JSON, nullable=False)
    plan_data = Column(JSON, nullable=True)
    error = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    sessions = relationship("SessionRecord", back_populates="plan", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<PlanRecord(id='{self.id}', user='{self.user_id}', status='{self.status}', active={self.is_active})>"


class SessionRecord(Base):
    """
    One materialized session row of a plan.

    Attributes:
        id: Primary key
        plan_id: Foreign key to plans table
        user_id: Athlete identifier
        session_date: Calendar date of the session
        sport: Classified sport
        title: Short title
        details: Remainder of the session string
        raw: Original session string
        status: 'planned', 'done' or 'missed'
        duration_minutes: Parsed duration (null when unparseable)
        structured_workout: Optional structured workout payload
    """

    __tablename__ = "plan_sessions"

    id = Column(Integer, primary_key=True)
    plan_id = Column(String, ForeignKey("plans.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    session_date = Column(Date, nullable=False, index=True)
    sport = Column(String, nullable=False)
    title = Column(String, nullable=False)
    details = Column(String, nullable=False)
    raw = Column(String, nullable=False)
    status = Column(String, default=SessionStatus.PLANNED.value, nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    structured_workout = Column(JSON, nullable=True)

    # Relationships
    plan = relationship("PlanRecord", back_populates="sessions")

    def __repr__(self):
        return f"<SessionRecord(date='{self.session_date}', sport='{self.sport}', title='{self.title}')>"

    def to_row(self) -> SessionRow:
        return SessionRow(
            user_id=self.user_id,
            plan_id=self.plan_id,
            date=self.session_date,
            sport=Sport(self.sport),
            title=self.title,
            details=self.details,
            raw=self.raw,
            status=SessionStatus(self.status),
            duration_minutes=self.duration_minutes,
            structured_workout=self.structured_workout,
        )


# Database connection and session management

def get_engine(database_url: str = "sqlite:///trainplan.db"):
    """
    Create SQLAlchemy engine.

    Args:
        database_url: Database connection string (default: SQLite file)

    Returns:
        SQLAlchemy Engine instance
    """
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, echo=False, connect_args=connect_args)


def get_session_factory(engine):
    """
    Create session factory.

    Args:
        engine: SQLAlchemy Engine instance

    Returns:
        Session factory (sessionmaker)
    """
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_database(database_url: str = "sqlite:///trainplan.db"):
    """
    Initialize database and create all tables.

    Args:
        database_url: Database connection string

    Returns:
        Session factory bound to the initialized engine
    """
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    return get_session_factory(engine)


class PlanRepository:
    """
    Persistence collaborator for plan jobs and session rows.

    Every method opens its own session. Database failures are logged and
    re-raised as PersistenceError.

    Args:
        session_factory: sessionmaker returned by init_database
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _fail(self, action: str, exc: SQLAlchemyError) -> PersistenceError:
        logger.error(f"Persistence failure while trying to {action}: {exc}")
        return PersistenceError(f"Could not {action}: {exc}")

    def create_plan(self, profile: AthleteProfile) -> PlanRecord:
        """Create a pending plan record for a profile."""
        db = self.session_factory()
        try:
            record = PlanRecord(
                user_id=profile.user_id,
                status=PLAN_PENDING,
                race_type=profile.race_type,
                race_date=profile.race_date,
                profile_data=profile.model_dump(mode="json"),
            )
            db.add(record)
            db.commit()
            logger.info(f"Created pending plan {record.id} for {profile.user_id}")
            return record
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail("create plan", e)
        finally:
            db.close()

    def get_plan(self, plan_id: str) -> Optional[PlanRecord]:
        db = self.session_factory()
        try:
            return db.get(PlanRecord, plan_id)
        except SQLAlchemyError as e:
            raise self._fail(f"load plan {plan_id}", e)
        finally:
            db.close()

    def get_active_plan(self, user_id: str) -> Optional[PlanRecord]:
        db = self.session_factory()
        try:
            return (
                db.query(PlanRecord)
                .filter(PlanRecord.user_id == user_id, PlanRecord.is_active.is_(True))
                .one_or_none()
            )
        except SQLAlchemyError as e:
            raise self._fail(f"load active plan for {user_id}", e)
        finally:
            db.close()

    def mark_ready(self, plan_id: str, plan: GeneratedPlan) -> None:
        """Store the accepted plan and flip the record to ready."""
        db = self.session_factory()
        try:
            record = db.get(PlanRecord, plan_id)
            if record is None:
                raise PersistenceError(f"Plan {plan_id} not found")
            record.status = PLAN_READY
            record.plan_start_date = plan.plan_start_date
            record.total_weeks = plan.total_weeks
            record.plan_data = plan.model_dump(mode="json")
            record.error = None
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail(f"mark plan {plan_id} ready", e)
        finally:
            db.close()

    def mark_failed(self, plan_id: str, error: str) -> None:
        db = self.session_factory()
        try:
            record = db.get(PlanRecord, plan_id)
            if record is None:
                raise PersistenceError(f"Plan {plan_id} not found")
            record.status = PLAN_FAILED
            record.error = error
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail(f"mark plan {plan_id} failed", e)
        finally:
            db.close()

    def activate(self, plan_id: str) -> None:
        """
        Make a ready plan the user's active plan.

        Raises:
            PersistenceError: If the plan is missing or not ready
        """
        db = self.session_factory()
        try:
            record = db.get(PlanRecord, plan_id)
            if record is None:
                raise PersistenceError(f"Plan {plan_id} not found")
            if record.status != PLAN_READY:
                raise PersistenceError(f"Plan {plan_id} is {record.status}; only ready plans can be activated")
            db.query(PlanRecord).filter(
                PlanRecord.user_id == record.user_id,
                PlanRecord.id != plan_id,
                PlanRecord.is_active.is_(True),
            ).update({PlanRecord.is_active: False}, synchronize_session=False)
            record.is_active = True
            db.commit()
            logger.info(f"Plan {plan_id} is now active for {record.user_id}")
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail(f"activate plan {plan_id}", e)
        finally:
            db.close()

    def replace_sessions(self, plan_id: str, rows: List[SessionRow]) -> int:
        """
        Replace every session row of a plan.

        Returns:
            Number of rows inserted
        """
        db = self.session_factory()
        try:
            db.query(SessionRecord).filter(SessionRecord.plan_id == plan_id).delete(synchronize_session=False)
            for row in rows:
                db.add(
                    SessionRecord(
                        plan_id=plan_id,
                        user_id=row.user_id,
                        session_date=row.date,
                        sport=row.sport.value,
                        title=row.title,
                        details=row.details,
                        raw=row.raw,
                        status=row.status.value,
                        duration_minutes=row.duration_minutes,
                        structured_workout=row.structured_workout,
                    )
                )
            db.commit()
            logger.info(f"Stored {len(rows)} session rows for plan {plan_id}")
            return len(rows)
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail(f"replace sessions for plan {plan_id}", e)
        finally:
            db.close()

    def list_sessions(self, plan_id: str) -> List[SessionRow]:
        db = self.session_factory()
        try:
            records = (
                db.query(SessionRecord)
                .filter(SessionRecord.plan_id == plan_id)
                .order_by(SessionRecord.session_date, SessionRecord.id)
                .all()
            )
            return [record.to_row() for record in records]
        except SQLAlchemyError as e:
            raise self._fail(f"list sessions for plan {plan_id}", e)
        finally:
            db.close()
