import secrets
from datetime import date


def contract_number(prefix: str, day: date) -> str:
    return f"{prefix}-{day.strftime('%y%m%d')}-{secrets.token_hex(3).upper()}"


def public_slug() -> str:
    return secrets.token_urlsafe(8).replace("_", "").replace("-", "").lower()[:10]
