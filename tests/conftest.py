"""Shared test fixtures for the clinic booking tests."""

from datetime import date, time
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from clinic.database import Base, create_db_engine
from clinic.main import create_app
from clinic.models import (
    Account,
    AccountRole,
    AdminProfile,
    DayOfWeek,
    DoctorProfile,
    Schedule,
)
from clinic.security_utils import hash_password
from clinic.shared.actor import Actor

# A Monday far enough in the future that nothing depends on "today"
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)

PASSWORD_HASH = hash_password("correct-horse-battery")


def actor_for(account: Account) -> Actor:
    return Actor(account_id=account.id, role=account.role)


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """File-backed SQLite database, fresh for every test."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'clinic.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_account(db: Session) -> Callable[..., Account]:
    """Insert an account (with its role profile) directly."""
    counter = {"n": 0}

    def _make(
        role: AccountRole = AccountRole.USER,
        name: str = None,
        specialization: str = "Cardiology",
        is_available: bool = True,
    ) -> Account:
        # Other sessions (app, threads) may have written since this one last read
        db.commit()
        counter["n"] += 1
        account = Account(
            name=name or f"{role.value.capitalize()} {counter['n']}",
            email=f"{role.value}{counter['n']}@clinic.test",
            password_hash=PASSWORD_HASH,
            role=role,
        )
        if role == AccountRole.DOCTOR:
            account.doctor_profile = DoctorProfile(
                specialization=specialization, phone="+15550100", is_available=is_available
            )
        elif role == AccountRole.ADMIN:
            account.admin_profile = AdminProfile()
        db.add(account)
        db.commit()
        return account

    return _make


@pytest.fixture
def make_schedule(db: Session) -> Callable[..., Schedule]:
    def _make(
        doctor: Account,
        day_of_week: DayOfWeek = DayOfWeek.MONDAY,
        start: time = time(9, 0),
        end: time = time(17, 0),
        is_available: bool = True,
    ) -> Schedule:
        db.commit()
        schedule = Schedule(
            doctor_id=doctor.id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            is_available=is_available,
        )
        db.add(schedule)
        db.commit()
        return schedule

    return _make


@pytest.fixture
def patient(make_account) -> Account:
    return make_account(AccountRole.USER, name="Pat Patient")


@pytest.fixture
def doctor(make_account, make_schedule) -> Account:
    """A doctor working Mondays 09:00-17:00."""
    doctor = make_account(AccountRole.DOCTOR, name="Dana Doctor")
    make_schedule(doctor)
    return doctor


@pytest.fixture
def admin(make_account) -> Account:
    return make_account(AccountRole.ADMIN, name="Ada Admin")


@pytest.fixture
def client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    app = create_app(session_factory)
    with TestClient(app) as test_client:
        yield test_client


def auth(account: Account) -> dict:
    """Headers the authentication gateway would forward for this account."""
    return {"X-Account-Id": account.id}
