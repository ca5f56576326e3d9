"""
Identity gateway: sign-up, password and federated sign-in, sign-out and
session observation.

Credentials (what the identity provider knows) and profiles (the ``users``
collection) are separate documents, so an identity can exist without a
profile. Sign-in repairs that case by writing a default ``customer``
profile.
"""
from typing import Callable, List, Optional, Tuple

import structlog
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

import config
from errors import (
    AuthError,
    AuthErrorKind,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from models import Credential, UserProfile
from schemas import FederatedLogin, Identity, LoginData, SignUpData, from_document
from store import DocumentStore, generate_id, now_ms

logger = structlog.get_logger(__name__)

PUBLIC_ROLES = ("donor", "customer", "ngo")
DEFAULT_ROLE = "customer"
FEDERATED_PROVIDER = "google"
FEDERATED_ASSERTION_MAX_AGE = 5 * 60
MIN_PASSWORD_LENGTH = 6

SessionCallback = Callable[[Optional[Identity]], None]

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)

serializer = URLSafeTimedSerializer(config.SECRET_KEY, salt="session")
federated_serializer = URLSafeTimedSerializer(config.FEDERATED_SECRET, salt="federated-assertion")

_email_adapter = TypeAdapter(EmailStr)

PROVIDER_ERROR_KINDS = {
    "auth/popup-blocked": AuthErrorKind.POPUP_BLOCKED,
    "auth/popup-closed-by-user": AuthErrorKind.POPUP_DISMISSED,
    "auth/cancelled-popup-request": AuthErrorKind.POPUP_DISMISSED,
    "auth/unauthorized-domain": AuthErrorKind.UNAUTHORIZED_ORIGIN,
    "auth/network-request-failed": AuthErrorKind.NETWORK,
    "auth/wrong-password": AuthErrorKind.INVALID_CREDENTIALS,
    "auth/user-not-found": AuthErrorKind.INVALID_CREDENTIALS,
    "auth/invalid-credential": AuthErrorKind.INVALID_CREDENTIALS,
    "auth/invalid-email": AuthErrorKind.INVALID_CREDENTIALS,
    "auth/email-already-in-use": AuthErrorKind.EMAIL_IN_USE,
}


def classify_auth_error(code: Optional[str]) -> AuthError:
    """Map a provider error code to an AuthError carrying the user-facing message."""
    kind = PROVIDER_ERROR_KINDS.get((code or "").strip().lower(), AuthErrorKind.UNKNOWN)
    return AuthError(kind)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_session_token(user_id: str) -> str:
    return serializer.dumps({"user_id": user_id})


def verify_session_token(token: str, max_age_seconds: int = config.SESSION_MAX_AGE):
    """
    Returns dict {'user_id': ...} if valid,
    or None if token is invalid/expired.
    """
    try:
        return serializer.loads(token, max_age=max_age_seconds)
    except (BadSignature, SignatureExpired):
        return None


def sign_federated_assertion(claims: dict) -> str:
    """Broker side of federated sign-in: sign the provider's identity claims."""
    return federated_serializer.dumps(claims)


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def validate_sign_up(data: SignUpData) -> None:
    fields = (data.role, data.name, data.email, data.phone, data.password, data.confirm_password)
    if not all(value and str(value).strip() for value in fields):
        raise ValidationError("Please fill in all fields")
    if data.role not in PUBLIC_ROLES:
        raise ValidationError("Please select a valid role")
    if data.password != data.confirm_password:
        raise ValidationError("Passwords do not match")
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    try:
        _email_adapter.validate_python(data.email.strip())
    except PydanticValidationError:
        raise ValidationError("Please enter a valid email address")


class IdentityGateway:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.current: Optional[Identity] = None
        self._observers: List[SessionCallback] = []

    # -- session observation --------------------------------------------------

    def observe_session(self, callback: SessionCallback) -> Callable[[], None]:
        """Register a callback for every session transition; returns an unsubscribe hook."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _transition(self, identity: Optional[Identity]) -> None:
        self.current = identity
        for callback in list(self._observers):
            callback(identity)

    def resolve_session(self, token: Optional[str]) -> Optional[Identity]:
        """Resolve the session cookie into an identity and notify observers."""
        identity = None
        if token:
            data = verify_session_token(token)
            if data:
                identity = self._load_profile(data["user_id"])
        self._transition(identity)
        return identity

    def issue_session_token(self, identity: Identity) -> str:
        return create_session_token(identity.id)

    # -- lookups ----------------------------------------------------------------

    def _credential_for(self, email: str) -> Optional[Credential]:
        rows = self.store.credentials.query({"email": email}, limit=1).unwrap()
        return rows[0] if rows else None

    def _load_profile(self, user_id: str) -> Optional[Identity]:
        result = self.store.users.get_by_id(user_id)
        if result.ok:
            return from_document(Identity, result.value)
        if isinstance(result.error, NotFoundError):
            return None
        raise result.error

    def _repair_profile(
        self,
        credential: Credential,
        name: Optional[str] = None,
        provider: Optional[str] = None,
        photo_url: Optional[str] = None,
        role_selected: bool = True,
        strict: bool = False,
    ) -> Identity:
        """Write the default profile for an identity that has none."""
        profile = UserProfile(
            id=credential.subject,
            email=credential.email,
            name=name or credential.email.split("@")[0],
            role=DEFAULT_ROLE,
            provider=provider,
            photo_url=photo_url,
            role_selected=role_selected,
            created_at=now_ms(),
        )
        identity = from_document(Identity, profile)
        result = self.store.users.create(profile)
        logger.warning(
            "profile_repaired",
            subject=credential.subject,
            provider=provider or "password",
            persisted=result.ok,
        )
        if strict:
            result.unwrap()
        return identity

    # -- operations -----------------------------------------------------------

    def sign_up(self, data: SignUpData) -> Identity:
        validate_sign_up(data)
        email = _normalize_email(data.email)

        if self._credential_for(email) is not None:
            raise AuthError(AuthErrorKind.EMAIL_IN_USE)

        subject = generate_id()
        self.store.credentials.create(
            Credential(
                subject=subject,
                email=email,
                password_hash=hash_password(data.password),
                provider="password",
            )
        ).unwrap()
        logger.info("identity_created", subject=subject, role=data.role)

        profile = UserProfile(
            id=subject,
            email=email,
            name=data.name.strip(),
            phone=data.phone.strip(),
            role=data.role,
            role_selected=True,
            created_at=now_ms(),
        )
        identity = from_document(Identity, profile)

        saved = self.store.users.create(profile)
        if not saved.ok:
            # The identity exists without a profile; the next sign-in repairs it.
            logger.error("profile_write_failed", subject=subject)

        self._transition(identity)
        return identity

    def sign_in_password(self, data: LoginData) -> Identity:
        if not data.email or not data.password:
            raise ValidationError("Please fill in all fields")

        credential = self._credential_for(_normalize_email(data.email))
        if (
            credential is None
            or not credential.password_hash
            or not verify_password(data.password, credential.password_hash)
        ):
            logger.info("sign_in_rejected", email=_normalize_email(data.email))
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

        identity = self._load_profile(credential.subject)
        if identity is None:
            identity = self._repair_profile(credential)

        logger.info("signed_in", subject=identity.id, role=identity.role)
        self._transition(identity)
        return identity

    def sign_in_federated(self, payload: FederatedLogin) -> Tuple[Identity, bool]:
        """
        Returns the identity and whether its profile was just created; a new
        identity still has to pick its role through select_role.
        """
        # drop any cached account before the provider round-trip
        self.sign_out()

        if payload.error:
            error = classify_auth_error(payload.error)
            logger.info("federated_sign_in_failed", kind=error.kind.value)
            raise error
        if not payload.assertion:
            raise AuthError(AuthErrorKind.UNKNOWN)

        try:
            claims = federated_serializer.loads(payload.assertion, max_age=FEDERATED_ASSERTION_MAX_AGE)
        except (BadSignature, SignatureExpired):
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

        if claims.get("origin") not in config.FEDERATED_ALLOWED_ORIGINS:
            raise AuthError(AuthErrorKind.UNAUTHORIZED_ORIGIN)

        federated_subject = claims.get("subject")
        email = _normalize_email(claims.get("email"))
        if not federated_subject or not email:
            raise AuthError(AuthErrorKind.UNKNOWN)

        credential = self._federated_credential(federated_subject, email)

        identity = self._load_profile(credential.subject)
        is_new_identity = identity is None
        if is_new_identity:
            identity = self._repair_profile(
                credential,
                name=claims.get("name"),
                provider=FEDERATED_PROVIDER,
                photo_url=claims.get("photo_url"),
                role_selected=False,
                strict=True,
            )

        logger.info("signed_in", subject=identity.id, role=identity.role, provider=FEDERATED_PROVIDER)
        self._transition(identity)
        return identity, is_new_identity

    def _federated_credential(self, federated_subject: str, email: str) -> Credential:
        rows = self.store.credentials.query({"federated_subject": federated_subject}, limit=1).unwrap()
        if rows:
            return rows[0]

        # same verified email as an existing account: link instead of duplicating
        credential = self._credential_for(email)
        if credential is not None:
            return self.store.credentials.update(
                credential.subject, {"federated_subject": federated_subject}
            ).unwrap()

        return self.store.credentials.create(
            Credential(
                subject=generate_id(),
                email=email,
                provider="federated",
                federated_subject=federated_subject,
            )
        ).unwrap()

    def select_role(self, identity: Identity, role: Optional[str]) -> Identity:
        """Complete a federated sign-up; the role cannot change afterwards."""
        if not role:
            raise ValidationError("Please select a role")
        if role not in PUBLIC_ROLES:
            raise ValidationError("Please select a valid role")
        if identity.role_selected:
            raise PermissionDeniedError("Role has already been selected for this account")

        self.store.users.update(identity.id, {"role": role, "role_selected": True}).unwrap()
        identity.role = role
        identity.role_selected = True
        logger.info("role_selected", subject=identity.id, role=role)
        self._transition(identity)
        return identity

    def sign_out(self) -> None:
        if self.current is None:
            return
        logger.info("signed_out", subject=self.current.id)
        self._transition(None)

    def provision_admin(self, email: str, password: str, name: str = "Admin") -> Identity:
        """Create or promote an administrator account from configuration."""
        email = _normalize_email(email)
        credential = self._credential_for(email)
        if credential is None:
            credential = self.store.credentials.create(
                Credential(
                    subject=generate_id(),
                    email=email,
                    password_hash=hash_password(password),
                    provider="password",
                )
            ).unwrap()

        identity = self._load_profile(credential.subject)
        if identity is not None and identity.role == "admin":
            return identity

        profile = UserProfile(
            id=credential.subject,
            email=email,
            name=name,
            role="admin",
            role_selected=True,
            created_at=now_ms(),
        )
        self.store.users.create(profile).unwrap()
        logger.info("admin_provisioned", subject=credential.subject)
        return from_document(Identity, profile)
