import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from timetracker.core.authorization import Role
from timetracker.core.config import Settings
from timetracker.database import Base, build_session_factory
from timetracker.main import create_app
from timetracker.models.customer import Customer
from timetracker.models.organization import Organization, UserOrganization
from timetracker.models.process import Activity, Process
from timetracker.models.user import User
from timetracker.services import auth_service
from timetracker.services.time_engine import TimeEntryTarget

TEST_JWT_SECRET = "test-jwt-secret-for-pytest-only-0000000000000000"
DEFAULT_PASSWORD = "Str0ng!Pass"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret=TEST_JWT_SECRET,
        env="test",
        database_url="sqlite://",
        password_hash_rounds=1,
        log_level="WARNING",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def db(engine):
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(settings, engine):
    return create_app(settings, engine)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user_factory(db, settings):
    counter = itertools.count(1)

    def make(*, role=Role.USER, email=None, name=None, password=DEFAULT_PASSWORD, is_active=True) -> User:
        n = next(counter)
        user = User(
            name=name or f"User {n}",
            email=email or f"user{n}@example.com",
            password_hash=auth_service.hash_password(password, settings),
            role=Role(role).value,
            is_active=is_active,
            login_attempts=0,
        )
        db.add(user)
        db.commit()
        return user

    return make


@pytest.fixture
def organization_factory(db):
    counter = itertools.count(1)

    def make(*, name=None, members=()) -> Organization:
        organization = Organization(name=name or f"Organization {next(counter)}")
        db.add(organization)
        db.flush()
        for member in members:
            db.add(UserOrganization(user_id=member.id, organization_id=organization.id))
        db.commit()
        return organization

    return make


@pytest.fixture
def target_factory(db, organization_factory):
    """Organization, customer, process and activity in one go; `member` joins the organization."""

    def make(*, member=None, customer_name="Acme Corp", activity_name="Development") -> TimeEntryTarget:
        organization = organization_factory(members=[member] if member is not None else [])
        customer = Customer(organization_id=organization.id, name=customer_name, is_active=True)
        process = Process(name="Engineering", is_active=True)
        db.add_all([customer, process])
        db.flush()
        activity = Activity(process_id=process.id, name=activity_name, is_active=True)
        db.add(activity)
        db.commit()
        return TimeEntryTarget(
            organization_id=organization.id,
            customer_id=customer.id,
            process_id=process.id,
            activity_id=activity.id,
        )

    return make


@pytest.fixture
def auth_headers(settings):
    def make(user: User) -> dict:
        token = auth_service.create_access_token(user, settings)
        return {"Authorization": f"Bearer {token}"}

    return make


@pytest.fixture
def target_payload():
    def make(target: TimeEntryTarget) -> dict:
        return {
            "organizationId": target.organization_id,
            "customerId": target.customer_id,
            "processId": target.process_id,
            "activityId": target.activity_id,
        }

    return make
