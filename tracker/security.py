import os
from typing import Optional
from itsdangerous import (
    URLSafeSerializer,
    URLSafeTimedSerializer,
    BadSignature,
    SignatureExpired,
)

# Signing key for the view-state cookie and delete confirmations
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production-min-32-chars")
DELETE_TOKEN_MAX_AGE = int(os.getenv("DELETE_TOKEN_MAX_AGE", "300"))

view_state_serializer = URLSafeSerializer(SECRET_KEY, salt="view-state")
delete_serializer = URLSafeTimedSerializer(SECRET_KEY, salt="confirm-delete")

# Only confirm_delete() holds this
_ISSUER = object()


class ConfirmationError(Exception):
    """A delete was attempted without a valid confirmation."""


class DeleteConfirmation:
    """Proof that the user confirmed deleting one specific record."""

    def __init__(self, record_id: str, issuer: object = None):
        if issuer is not _ISSUER:
            raise ConfirmationError("Delete confirmations are issued by confirm_delete()")
        self.record_id = record_id

    def __repr__(self):
        return f"<DeleteConfirmation {self.record_id}>"


def create_delete_token(record_id: str) -> str:
    """Create the token shown on the delete confirmation prompt."""
    return delete_serializer.dumps({"record_id": record_id})


def confirm_delete(token: Optional[str], record_id: str) -> DeleteConfirmation:
    """Verify a confirmation token for `record_id`.

    Raises ConfirmationError if the token is missing, tampered with,
    expired, or was issued for a different record.
    """
    if not token:
        raise ConfirmationError("Delete must be confirmed")
    try:
        data = delete_serializer.loads(token, max_age=DELETE_TOKEN_MAX_AGE)
    except SignatureExpired:
        raise ConfirmationError("Delete confirmation expired, please confirm again")
    except BadSignature:
        raise ConfirmationError("Invalid delete confirmation")
    if not isinstance(data, dict) or data.get("record_id") != record_id:
        raise ConfirmationError("Delete confirmation does not match this opportunity")
    return DeleteConfirmation(record_id, _ISSUER)


def sign_view_state(data: dict) -> str:
    return view_state_serializer.dumps(data)


def load_view_state(token: Optional[str]) -> Optional[dict]:
    """Decode a signed view-state cookie; None if missing or tampered."""
    if not token:
        return None
    try:
        data = view_state_serializer.loads(token)
    except BadSignature:
        return None
    return data if isinstance(data, dict) else None
