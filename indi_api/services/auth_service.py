"""
Authentication use cases: registration, login and logout.

Card and analytics code only consumes the resulting user id through
session_service.current_user_id.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from indi_api.core.errors import AuthenticationError, ConflictError, ValidationError
from indi_api.core.security import hash_password, needs_rehash, verify_password
from indi_api.repositories.sql_repository import SQLRepository
from indi_api.services.session_service import delete_session, issue_session

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


@dataclass
class AuthResult:
    user_id: str
    email: str
    full_name: Optional[str]
    session_token: str


class AuthService:
    """Handles registration, login and logout flows."""

    def __init__(self, repository: SQLRepository | None = None) -> None:
        self.repository = repository or SQLRepository()

    def _clean_email(self, email: str | None) -> str:
        raw = (email or "").strip().lower()
        if not raw or not EMAIL_RE.match(raw):
            raise ValidationError("A valid email is required", code="invalid_email")
        return raw

    def register(self, email: str, password: str, full_name: str | None = None) -> AuthResult:
        raw_email = self._clean_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must have at least {MIN_PASSWORD_LENGTH} characters",
                code="weak_password",
            )
        if self.repository.get_user_by_email(raw_email):
            raise ConflictError("Email already registered", code="email_taken")
        name = full_name.strip() if isinstance(full_name, str) else ""
        user = self.repository.create_user(raw_email, hash_password(password), name or None)
        logger.info("Registered user %s", user.id)
        token = issue_session(user.id)
        return AuthResult(user_id=user.id, email=user.email, full_name=user.full_name, session_token=token)

    def login(self, email: str, password: str) -> AuthResult:
        raw_email = (email or "").strip().lower()
        user = self.repository.get_user_by_email(raw_email) if raw_email else None
        if not user or not verify_password(password or "", user.password_hash):
            raise AuthenticationError("Invalid credentials", code="invalid_credentials")
        if needs_rehash(user.password_hash):
            self.repository.update_user_password(user.id, hash_password(password))
        token = issue_session(user.id)
        return AuthResult(user_id=user.id, email=user.email, full_name=user.full_name, session_token=token)

    def logout(self, session_token: Optional[str]) -> None:
        if not session_token:
            return
        delete_session(session_token)

    def profile(self, user_id: str) -> dict:
        user = self.repository.get_user(user_id)
        if not user:
            raise AuthenticationError("Missing or invalid credentials")
        return {"id": user.id, "email": user.email, "fullName": user.full_name}
