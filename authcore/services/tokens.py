import secrets
import time


def issue_token(account_id: int) -> str:
    """Opaque session handle: account id, nanosecond clock and random suffix.

    Only meaningful to this process' session store; it is not a signed bearer
    credential and must not be trusted by other services.
    """
    return f"{account_id}.{time.time_ns():x}.{secrets.token_urlsafe(16)}"
