import random
import string


def _random_block(length: int = 12) -> str:
    """
    Return a random string of uppercase letters and digits.
    """
    alphabet = string.ascii_uppercase + string.digits
    return "".join(random.choices(alphabet, k=length))


def generate_id(prefix: str = "ID") -> str:
    """
    Generate a short ID like 'PRD-1F2A9C3D7K0B' or 'ID-8K2L0P9QX1M4'.

    Used by SQLAlchemy as a column default, so it must work when called
    with zero positional arguments.
    """
    block = _random_block()
    if prefix:
        return f"{prefix}-{block}"
    return block


def product_id() -> str:
    return generate_id("PRD")


def transaction_id() -> str:
    return generate_id("TXN")


def stock_event_id() -> str:
    return generate_id("STK")


def user_id() -> str:
    return generate_id("USR")


def idempotency_key_id() -> str:
    return generate_id("IDK")
