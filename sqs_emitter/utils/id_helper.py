# utils/id_helper.py
import secrets

from sqs_emitter.core.config import settings

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ123456789"


def random_value(length: int = settings.RANDOM_ID_LENGTH) -> str:
    """Random identifier drawn from A-Z and 1-9."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
