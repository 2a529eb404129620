from fastapi import Request
from supportdesk.core.errors import AuthenticationRequired
from supportdesk.core.identity import identity_token


async def body_user_id(request: Request) -> str:
    """
    Pull ``user_id`` out of the raw JSON body so a missing caller identity
    is answered with 401 before the rest of the body is validated.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    token = identity_token(payload.get("user_id")) if isinstance(payload, dict) else None
    if token is None:
        raise AuthenticationRequired("Authentication required. Please log in.")
    return token
