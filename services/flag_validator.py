import hmac

from challenge.models import Challenge


def normalize_flag(flag: str) -> str:
    return flag.strip()


def is_correct(submitted_flag: str, challenge: Challenge) -> bool:
    """Case-sensitive exact match after trimming surrounding whitespace.

    ``challenge.flag_format`` is display-only and never consulted here.
    """
    if not isinstance(submitted_flag, str):
        raise TypeError("submitted_flag must be a string")
    return hmac.compare_digest(
        normalize_flag(submitted_flag).encode("utf-8"),
        normalize_flag(challenge.flag).encode("utf-8"),
    )
