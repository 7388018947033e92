"""Name and workspace syntax checks."""

import re

MAX_NAME_LENGTH = 255

_SECRET_NAME_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9_.\-]*")
_WORKSPACE_ID_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.\-/]*")


def validate_secret_name(name: str) -> bool:
    """
    Check a secret name.

    A valid name is 1-255 characters, starts with an ASCII letter and
    continues with ASCII letters, digits, ``_``, ``.`` or ``-``.
    """
    if not isinstance(name, str) or not name or len(name) > MAX_NAME_LENGTH:
        return False
    return _SECRET_NAME_PATTERN.fullmatch(name) is not None


def validate_workspace_id(workspace_id: str) -> bool:
    """
    Check a workspace identifier.

    Same rules as secret names, except the first character may also be a
    digit and ``/`` is allowed after it.
    """
    if (
        not isinstance(workspace_id, str)
        or not workspace_id
        or len(workspace_id) > MAX_NAME_LENGTH
    ):
        return False
    return _WORKSPACE_ID_PATTERN.fullmatch(workspace_id) is not None
