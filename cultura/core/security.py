def redact_user_id(user_id: str | None, visible_chars: int = 8) -> str:
    """
    Redact a user id for logging purposes.
    Shows first few characters followed by *** for debugging.

    Args:
        user_id: The user id to redact
        visible_chars: Number of characters to show before redaction (default: 8)

    Returns:
        Redacted string (e.g., "3f9a1c2b***" or "None" if user_id is None)
    """
    if not user_id:
        return "None"
    if len(user_id) <= visible_chars:
        return "***"
    return f"{user_id[:visible_chars]}***"
