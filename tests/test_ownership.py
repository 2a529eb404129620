import logging
import uuid

import pytest
from supportdesk.core.errors import AuthenticationRequired, IntegrityViolation, ValidationError
from supportdesk.core.identity import classify, requester_identity
from supportdesk.core.ownership import is_owned_by, list_owned_tickets, owns, scope, verify
from supportdesk.models.ticket import Ticket


@pytest.mark.parametrize("caller", [None, "", "   "])
def test_scope_requires_a_caller_identity(caller):
    with pytest.raises(AuthenticationRequired):
        scope(caller)


def test_scope_rejects_unknown_status():
    with pytest.raises(ValidationError) as exc:
        scope("gid://shopify/Customer/1", status="pending")
    assert "open, in_progress, resolved, closed" in exc.value.message


def test_listing_never_crosses_callers(db_session, make_ticket):
    native_a = str(uuid.uuid4())
    native_b = str(uuid.uuid4())
    callers = [
        native_a,
        native_b,
        "gid://shopify/Customer/1",
        "gid://shopify/Customer/10",
        "1",
    ]
    owned = {caller: set() for caller in callers}
    for _ in range(2):
        for caller in callers:
            owned[caller].add(make_ticket(caller).id)
    # A ticket without any requester identity belongs to nobody.
    make_ticket(None)

    for caller in callers:
        tickets, total = list_owned_tickets(db_session, caller, limit=100)
        assert {ticket.id for ticket in tickets} == owned[caller]
        assert total == 2


def test_native_listing_ignores_case(db_session, make_ticket):
    caller = str(uuid.uuid4())
    ticket = make_ticket(caller.upper())

    tickets, _ = list_owned_tickets(db_session, caller)
    assert [t.id for t in tickets] == [ticket.id]


def test_listing_filters_by_status_and_pages(db_session, make_ticket):
    caller = "gid://shopify/Customer/77"
    for _ in range(3):
        make_ticket(caller)
    make_ticket(caller, status="closed")

    open_tickets, open_total = list_owned_tickets(db_session, caller, status="open", page=1, limit=2)
    assert open_total == 3
    assert len(open_tickets) == 2
    assert all(ticket.status == "open" for ticket in open_tickets)

    second_page, _ = list_owned_tickets(db_session, caller, status="open", page=2, limit=2)
    assert len(second_page) == 1

    closed, closed_total = list_owned_tickets(db_session, caller, status="closed")
    assert closed_total == 1 and closed[0].status == "closed"


def test_listing_is_newest_first(db_session, make_ticket):
    caller = str(uuid.uuid4())
    for _ in range(3):
        make_ticket(caller)

    tickets, _ = list_owned_tickets(db_session, caller)
    created = [t.created_at for t in tickets]
    assert created == sorted(created, reverse=True)


def test_verify_rejects_foreign_rows_and_logs(caplog):
    caller = str(uuid.uuid4())
    mine = Ticket(id=str(uuid.uuid4()), user_id=caller)
    theirs = Ticket(id=str(uuid.uuid4()), user_id=str(uuid.uuid4()))

    assert verify(caller, [mine]) == [mine]

    with caplog.at_level(logging.ERROR, logger="supportdesk.security"):
        with pytest.raises(IntegrityViolation):
            verify(caller, [mine, theirs])
    assert theirs.id in caplog.text


def test_verify_uses_metadata_for_foreign_callers():
    caller = "gid://shopify/Customer/5"
    mine = Ticket(id="a", user_id=None, metadata_info={"original_user_id": caller})
    native_row = Ticket(id="b", user_id=str(uuid.uuid4()), metadata_info=None)
    lookalike = Ticket(id="c", user_id=None, metadata_info={"original_user_id": caller + "0"})

    verify(caller, [mine])
    for row in (native_row, lookalike):
        with pytest.raises(IntegrityViolation):
            verify(caller, [mine, row])


def test_is_owned_by():
    native = str(uuid.uuid4())
    native_row = Ticket(user_id=native)
    foreign_row = Ticket(user_id=None, metadata_info={"original_user_id": "shop:1"})

    assert is_owned_by(native_row, native.upper())
    assert not is_owned_by(native_row, "shop:1")
    assert is_owned_by(foreign_row, "shop:1")
    assert not is_owned_by(foreign_row, native)
    with pytest.raises(AuthenticationRequired):
        is_owned_by(foreign_row, "")


def test_owns_follows_the_stored_requester_identity(db_session, make_ticket):
    foreign = "gid://shopify/Customer/9"
    # A row carrying both shapes belongs to its native requester only.
    mixed = make_ticket(caller=str(uuid.uuid4()), metadata_info={"original_user_id": foreign})
    orphan = Ticket(user_id=None, metadata_info=None)

    assert owns(mixed, requester_identity(mixed))
    assert not owns(mixed, classify(foreign))
    assert not owns(orphan, classify(foreign))

    rows, total = list_owned_tickets(db_session, foreign)
    assert rows == [] and total == 0
