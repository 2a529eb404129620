import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

NATIVE_ID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)

FOREIGN_ID_KEY = "original_user_id"


@dataclass(frozen=True)
class NativeId:
    value: str


@dataclass(frozen=True)
class ForeignId:
    value: str


@dataclass(frozen=True)
class Absent:
    pass


RequesterIdentity = Union[NativeId, ForeignId, Absent]


def classify(token: str) -> Union[NativeId, ForeignId]:
    """
    Classify a non-empty identity token.

    Native ids are lower-cased so the same identifier always compares equal,
    whatever case the caller used. Foreign ids are kept verbatim.
    Empty tokens must be rejected by the caller before getting here.
    """
    if NATIVE_ID_PATTERN.fullmatch(token):
        return NativeId(token.lower())
    return ForeignId(token)


def identity_token(value: Any) -> Optional[str]:
    """Normalise a raw ``user_id`` value; numeric platform ids become strings, blanks become None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


def requester_identity(ticket: Any) -> RequesterIdentity:
    """Read the requester identity variant back from a stored ticket row."""
    if ticket.user_id:
        return NativeId(ticket.user_id.lower())
    metadata = ticket.metadata_info or {}
    foreign = metadata.get(FOREIGN_ID_KEY) if isinstance(metadata, dict) else None
    if foreign:
        return ForeignId(foreign)
    return Absent()


def project_identity(identity: RequesterIdentity) -> Tuple[Optional[str], Optional[Dict[str, str]]]:
    """Map an identity variant onto the (user_id, metadata) column pair."""
    if isinstance(identity, NativeId):
        return identity.value, None
    if isinstance(identity, ForeignId):
        return None, {FOREIGN_ID_KEY: identity.value}
    return None, None
