import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from supportdesk.core.db import Base, get_db
from supportdesk.core.identity import classify, project_identity
from supportdesk.core.numbering import create_with_ticket_number
from supportdesk.main import app
from supportdesk.models import habit, ticket  # noqa: F401  (registers tables)
from supportdesk.models.ticket import Ticket, TicketMessage

# SQLite file database shared by the unit and API tests
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_supportdesk.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def sql_statements():
    """Every SQL statement sent to the test database while the fixture is active."""
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    try:
        yield statements
    finally:
        event.remove(engine, "before_cursor_execute", record)


@pytest.fixture
def make_ticket(db_session):
    def _make(caller=None, year=None, **overrides):
        user_id, metadata_info = project_identity(classify(caller)) if caller else (None, None)

        def build(number):
            fields = dict(
                ticket_number=number,
                user_id=user_id,
                metadata_info=metadata_info,
                user_name="Ada",
                user_email="ada@example.com",
                user_phone="555-0100",
                subject="Printer on fire",
                description="Smoke everywhere",
                status="open",
                priority="medium",
            )
            fields.update(overrides)
            return Ticket(**fields)

        return create_with_ticket_number(db_session, build, year=year)

    return _make


@pytest.fixture
def add_message(db_session):
    def _add(ticket, sender_type="requester", body="hello", **fields):
        message = TicketMessage(ticket_id=ticket.id, sender_type=sender_type, message=body, **fields)
        db_session.add(message)
        db_session.commit()
        db_session.refresh(message)
        return message

    return _add
