"""
Chat session id resolution.

A session id is the two participant identities, sorted and joined with a
separator, so both sides derive the same id.
"""

from univibe.core.exceptions import InvalidIdentityError

DEFAULT_SEPARATOR = "_"


def _check_identity(identity: str, separator: str) -> None:
    if not identity:
        raise InvalidIdentityError("Identity must not be empty")
    if separator in identity:
        raise InvalidIdentityError(
            f"Identity {identity!r} contains the session separator {separator!r}",
            details={"identity": identity, "separator": separator},
        )


def resolve_session_id(self_id: str, other_id: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """
    Derive the session id for a two-party conversation.

    Args:
        self_id: Caller identity
        other_id: Counterpart identity
        separator: Joins the sorted identities

    Returns:
        Session id, identical for (a, b) and (b, a)

    Raises:
        InvalidIdentityError: Empty identity, identity containing the
            separator, or both identities equal
    """
    _check_identity(self_id, separator)
    _check_identity(other_id, separator)
    if self_id == other_id:
        raise InvalidIdentityError("A chat session needs two distinct participants")
    return separator.join(sorted((self_id, other_id)))


def session_participants(session_id: str, separator: str = DEFAULT_SEPARATOR) -> tuple[str, str]:
    """Split a session id back into its two identities (sorted order)."""
    parts = session_id.split(separator)
    if len(parts) != 2 or not all(parts):
        raise InvalidIdentityError(f"Malformed session id: {session_id!r}")
    return parts[0], parts[1]
