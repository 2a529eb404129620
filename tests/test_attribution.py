import uuid

import pytest
from supportdesk.core.attribution import Author, SenderType, build_message, resolve_author
from supportdesk.core.errors import ValidationError
from supportdesk.models.ticket import Ticket

REQUESTER_ID = str(uuid.uuid4())


@pytest.fixture
def native_ticket():
    return Ticket(id=str(uuid.uuid4()), user_id=REQUESTER_ID, user_name="Ada")


@pytest.fixture
def foreign_ticket():
    return Ticket(id=str(uuid.uuid4()), user_id=None, user_name="Shopper",
                  metadata_info={"original_user_id": "gid://shopify/Customer/1"})


def test_agent_without_name_gets_default_label(native_ticket):
    author = resolve_author(native_ticket, sender_type="agent")
    assert author == Author(kind=SenderType.AGENT, id=None, name="Support Agent")


def test_agent_keeps_supplied_identity(native_ticket):
    author = resolve_author(native_ticket, sender_type="agent", sender_id="agent-7", sender_name="Linus",
                            user_id=str(uuid.uuid4()), user_name="ignored")
    assert author == Author(kind=SenderType.AGENT, id="agent-7", name="Linus")


@pytest.mark.parametrize("hint", [None, "user", "requester", "AGENT", ""])
def test_anything_but_agent_is_the_requester(native_ticket, hint):
    author = resolve_author(native_ticket, sender_type=hint)
    assert author.kind == SenderType.REQUESTER
    assert author.id == REQUESTER_ID
    assert author.name == "Ada"


def test_requester_native_id_wins(native_ticket):
    caller = str(uuid.uuid4())
    author = resolve_author(native_ticket, user_id=caller.upper(), user_name="Ada L.")
    assert author == Author(kind=SenderType.REQUESTER, id=caller, name="Ada L.")


def test_requester_foreign_id_falls_back_to_ticket(native_ticket, foreign_ticket):
    assert resolve_author(native_ticket, user_id="gid://shopify/Customer/1").id == REQUESTER_ID

    author = resolve_author(foreign_ticket, user_id="gid://shopify/Customer/1")
    assert author.id is None
    assert author.name == "Shopper"


@pytest.mark.parametrize("body", [None, "", "   ", "\n\t"])
def test_blank_body_is_rejected(native_ticket, body):
    with pytest.raises(ValidationError):
        build_message(native_ticket, body)


def test_build_message_without_sender_identifier(foreign_ticket):
    attachments = [{"name": "a.png"}, {"name": "b.pdf"}]
    message = build_message(foreign_ticket, " Where is my order? ", attachments)

    assert message.ticket_id == foreign_ticket.id
    assert message.sender_type == SenderType.REQUESTER
    assert message.sender_id is None
    assert message.sender_name == "Shopper"
    assert message.message == " Where is my order? "
    assert message.attachments == attachments


def test_requester_without_stored_identity_has_no_id():
    ticket = Ticket(id=str(uuid.uuid4()), user_id=None, user_name="Walk-in", metadata_info=None)
    author = resolve_author(ticket, user_id="gid://shopify/Customer/1")
    assert author == Author(kind=SenderType.REQUESTER, id=None, name="Walk-in")
