"""Mock authentication store.

State is an immutable :class:`AuthState`; every operation is a reducer
``(state, ...) -> AuthOutcome``. An outcome always carries the next state,
including audit entries written while rejecting a request, plus the error
to surface (if any). :class:`AuthStore` holds the current state for a
running app, commits each outcome and raises its error.

Nothing here is real security: there is no password storage, and the
registered/deleted account tables are seeded mock data kept in memory.
"""

from __future__ import annotations

import logging
import math
import re
import secrets
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.data import AUTH_SEED_FILE, load_seed, parse_datetime
from core.errors import (
    AccountLockedError,
    BusinessRuleError,
    FactoryLinkError,
    NotAuthenticatedError,
    ValidationError,
)


logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)
SPECIAL_CHARS = '!@#$%^&*(),.?":{}|<>'

PROFILE_FIELDS = {"first_name", "last_name", "company", "phone", "avatar", "bio", "website", "linkedin"}
_DEMO_PROFILE_FIELDS = (PROFILE_FIELDS - {"first_name", "last_name"}) | {"role", "subscription", "quotes_used", "quotes_limit"}

DEFAULT_PREFERENCES: Dict[str, Dict[str, Any]] = {
    "notifications": {
        "email": True,
        "push": True,
        "sms": False,
        "quote_updates": True,
        "messages": True,
        "status_changes": True,
    },
    "communication": {
        "preferred_method": "email",
        "timezone": "America/New_York",
        "business_hours": {"start": "09:00", "end": "17:00"},
    },
    "dashboard": {
        "default_view": "map",
        "auto_refresh": True,
        "compact_mode": False,
    },
}


@dataclass(frozen=True)
class AuthPolicy:
    lockout_threshold: int = 5
    lockout_window: timedelta = timedelta(minutes=15)
    lockout_duration: timedelta = timedelta(minutes=15)
    login_min_password_length: int = 6
    password_min_length: int = 8
    verification_lifetime: timedelta = timedelta(hours=24)
    data_retention: timedelta = timedelta(days=365)
    deletion_phrase: str = "DELETE MY ACCOUNT"
    max_history: int = 1000


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str = "unknown"
    user_agent: str = "unknown"


@dataclass(frozen=True)
class User:
    id: str
    email: str
    first_name: str
    last_name: str
    role: str = "founder"
    company: Optional[str] = None
    phone: Optional[str] = None
    avatar: str = ""
    bio: Optional[str] = None
    website: Optional[str] = None
    linkedin: Optional[str] = None
    created_at: Optional[datetime] = None
    subscription: str = "freemium"
    quotes_used: int = 0
    quotes_limit: int = 3
    preferences: Dict[str, Any] = field(default_factory=lambda: _copy_prefs(DEFAULT_PREFERENCES))
    status: str = "pending_verification"
    email_verified: bool = False
    last_login_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deletion_reason: Optional[str] = None


@dataclass(frozen=True)
class AuthLog:
    id: str
    email: str
    action: str
    success: bool
    timestamp: datetime
    reason: Optional[str] = None
    user_id: Optional[str] = None
    ip_address: str = "unknown"
    user_agent: str = "unknown"
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeletionAuditEntry:
    id: str
    timestamp: datetime
    action: str
    performed_by: str
    details: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class DeletedAccount:
    id: str
    original_user_id: str
    email: str
    first_name: str
    last_name: str
    deleted_at: datetime
    deletion_reason: str
    deleted_by: str
    phone: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    data_retention_until: Optional[datetime] = None
    audit_trail: Tuple[DeletionAuditEntry, ...] = ()


@dataclass(frozen=True)
class RegistrationAttempt:
    id: str
    email: str
    attempted_at: datetime
    blocked: bool
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    block_reason: Optional[str] = None
    deleted_account_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class EmailVerification:
    id: str
    email: str
    token: str
    created_at: datetime
    expires_at: datetime
    verified: bool = False
    verified_at: Optional[datetime] = None
    attempts: int = 0


@dataclass(frozen=True)
class RegistrationRequest:
    email: str
    password: str
    first_name: str
    last_name: str
    role: str = "founder"
    company: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class Lockout:
    is_locked: bool
    remaining_minutes: Optional[int] = None


@dataclass(frozen=True)
class AuthState:
    user: Optional[User] = None
    is_authenticated: bool = False
    accounts: Tuple[User, ...] = ()
    registered_emails: Tuple[str, ...] = ()
    deleted_accounts: Tuple[DeletedAccount, ...] = ()
    registration_attempts: Tuple[RegistrationAttempt, ...] = ()
    authentication_logs: Tuple[AuthLog, ...] = ()
    email_verifications: Tuple[EmailVerification, ...] = ()


@dataclass(frozen=True)
class AuthOutcome:
    state: AuthState
    error: Optional[FactoryLinkError] = None
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None


TokenFactory = Callable[[], str]


def _copy_prefs(prefs: Dict[str, Any]) -> Dict[str, Any]:
    return {k: dict(v) if isinstance(v, dict) else v for k, v in prefs.items()}


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_token() -> str:
    return secrets.token_urlsafe(16)


# ---------------- Validation ----------------
def validate_email_format(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def password_checks(password: str, policy: AuthPolicy = AuthPolicy()) -> Dict[str, bool]:
    password = password or ""
    return {
        "min_length": len(password) >= policy.password_min_length,
        "has_upper_case": bool(re.search(r"[A-Z]", password)),
        "has_lower_case": bool(re.search(r"[a-z]", password)),
        "has_numbers": bool(re.search(r"\d", password)),
        "has_special_char": any(ch in SPECIAL_CHARS for ch in password),
    }


def validate_password(password: str, policy: AuthPolicy = AuthPolicy()) -> bool:
    return all(password_checks(password, policy).values())


# ---------------- Queries ----------------
def check_email_exists(state: AuthState, email: str) -> bool:
    return (email or "").lower() in state.registered_emails


def check_deleted_account(state: AuthState, email: str, phone: Optional[str] = None) -> Optional[DeletedAccount]:
    email_l = (email or "").lower()
    for deleted in state.deleted_accounts:
        if deleted.email.lower() == email_l or (phone and deleted.phone == phone):
            return deleted
    return None


def find_similar_deleted_account(state: AuthState, request: RegistrationRequest) -> Optional[DeletedAccount]:
    for deleted in state.deleted_accounts:
        same_name = (
            deleted.first_name.lower() == request.first_name.strip().lower()
            and deleted.last_name.lower() == request.last_name.strip().lower()
        )
        if same_name and (deleted.phone == request.phone or deleted.email.lower() == request.email.lower()):
            return deleted
    return None


def check_account_lockout(state: AuthState, email: str, now: datetime, policy: AuthPolicy = AuthPolicy()) -> Lockout:
    email_l = (email or "").lower()
    since = now - policy.lockout_window
    failed = [
        log
        for log in state.authentication_logs
        if log.email.lower() == email_l and log.action == "login_failed" and log.timestamp > since
    ]
    if len(failed) < policy.lockout_threshold:
        return Lockout(is_locked=False)
    lockout_end = max(log.timestamp for log in failed) + policy.lockout_duration
    if now >= lockout_end:
        return Lockout(is_locked=False)
    remaining = math.ceil((lockout_end - now).total_seconds() / 60)
    return Lockout(is_locked=True, remaining_minutes=remaining)


# ---------------- Log writers ----------------
def log_authentication(
    state: AuthState,
    *,
    email: str,
    action: str,
    success: bool,
    now: datetime,
    client: ClientInfo,
    reason: Optional[str] = None,
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuthState:
    entry = AuthLog(
        id=_new_id("auth"),
        email=email,
        action=action,
        success=success,
        timestamp=now,
        reason=reason,
        user_id=user_id,
        ip_address=client.ip_address,
        user_agent=client.user_agent,
        metadata=dict(metadata or {}),
    )
    if success:
        logger.info("auth %s for %s", action, email)
    else:
        logger.info("auth %s for %s rejected: %s", action, email, reason)
    return replace(state, authentication_logs=state.authentication_logs + (entry,))


def log_registration_attempt(
    state: AuthState,
    request: RegistrationRequest,
    *,
    now: datetime,
    client: ClientInfo,
    blocked: bool,
    block_reason: Optional[str] = None,
    deleted_account_id: Optional[str] = None,
) -> AuthState:
    attempt = RegistrationAttempt(
        id=_new_id("attempt"),
        email=request.email,
        attempted_at=now,
        blocked=blocked,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        block_reason=block_reason,
        deleted_account_id=deleted_account_id,
        ip_address=client.ip_address,
        user_agent=client.user_agent,
    )
    return replace(state, registration_attempts=state.registration_attempts + (attempt,))


def add_deletion_audit_entry(
    state: AuthState,
    deleted_account_id: str,
    *,
    action: str,
    performed_by: str,
    details: str,
    now: datetime,
    client: ClientInfo,
) -> AuthState:
    entry = DeletionAuditEntry(
        id=_new_id("audit"),
        timestamp=now,
        action=action,
        performed_by=performed_by,
        details=details,
        ip_address=client.ip_address,
        user_agent=client.user_agent,
    )
    accounts = tuple(
        replace(acc, audit_trail=acc.audit_trail + (entry,)) if acc.id == deleted_account_id else acc
        for acc in state.deleted_accounts
    )
    return replace(state, deleted_accounts=accounts)


# ---------------- Email verification ----------------
def send_email_verification(
    state: AuthState,
    email: str,
    *,
    now: datetime,
    policy: AuthPolicy = AuthPolicy(),
    token_factory: TokenFactory = default_token,
) -> AuthOutcome:
    verification = EmailVerification(
        id=_new_id("verify"),
        email=email,
        token=token_factory(),
        created_at=now,
        expires_at=now + policy.verification_lifetime,
    )
    # Delivery is mocked; the token is returned to the caller instead of emailed.
    logger.info("verification issued for %s", email)
    state = replace(state, email_verifications=state.email_verifications + (verification,))
    return AuthOutcome(state, value=verification.token)


def verify_email(state: AuthState, token: str, *, now: datetime) -> AuthOutcome:
    match = next((v for v in state.email_verifications if v.token == token and not v.verified), None)
    if match is None or match.expires_at <= now:
        return AuthOutcome(state, value=False)

    verifications = tuple(
        replace(v, verified=True, verified_at=now) if v.id == match.id else v for v in state.email_verifications
    )
    state = replace(state, email_verifications=verifications)

    def _mark(user: User) -> User:
        if user.email.lower() != match.email.lower():
            return user
        status = "active" if user.status == "pending_verification" else user.status
        return replace(user, email_verified=True, status=status)

    state = replace(
        state,
        accounts=tuple(_mark(u) for u in state.accounts),
        user=_mark(state.user) if state.user else None,
    )
    state = log_authentication(
        state, email=match.email, action="email_verification", success=True, now=now, client=ClientInfo()
    )
    return AuthOutcome(state, value=True)


def resend_email_verification(
    state: AuthState,
    email: str,
    *,
    now: datetime,
    policy: AuthPolicy = AuthPolicy(),
    token_factory: TokenFactory = default_token,
) -> AuthOutcome:
    email_l = email.lower()
    verifications = tuple(
        replace(v, expires_at=now) if v.email.lower() == email_l and not v.verified else v
        for v in state.email_verifications
    )
    state = replace(state, email_verifications=verifications)
    return send_email_verification(state, email, now=now, policy=policy, token_factory=token_factory)


# ---------------- Login / logout ----------------
def login(
    state: AuthState,
    email: str,
    password: str,
    *,
    now: datetime,
    policy: AuthPolicy = AuthPolicy(),
    client: ClientInfo = ClientInfo(),
    demo_profile: Optional[Dict[str, Any]] = None,
) -> AuthOutcome:
    if not validate_email_format(email):
        return AuthOutcome(state, ValidationError("Please enter a valid email address."))

    lockout = check_account_lockout(state, email, now, policy)
    if lockout.is_locked:
        state = log_authentication(
            state,
            email=email,
            action="login_failed",
            success=False,
            now=now,
            client=client,
            reason="Account temporarily locked due to multiple failed attempts",
            metadata={"lockout_remaining_minutes": lockout.remaining_minutes},
        )
        return AuthOutcome(
            state,
            AccountLockedError(
                "Account temporarily locked due to multiple failed login attempts. "
                f"Please try again in {lockout.remaining_minutes} minutes.",
                remaining_minutes=lockout.remaining_minutes,
            ),
        )

    if not check_email_exists(state, email):
        state = log_authentication(
            state,
            email=email,
            action="login_failed",
            success=False,
            now=now,
            client=client,
            reason="Email address not registered",
            metadata={"attempted_email": email},
        )
        return AuthOutcome(
            state,
            BusinessRuleError(
                "No account found with this email address. Please check your email or create a new account."
            ),
        )

    deleted = check_deleted_account(state, email)
    if deleted is not None:
        state = log_authentication(
            state,
            email=email,
            action="login_failed",
            success=False,
            now=now,
            client=client,
            reason="Attempted login with deleted account",
            metadata={"deleted_account_id": deleted.id},
        )
        state = add_deletion_audit_entry(
            state,
            deleted.id,
            action="reregistration_attempted",
            performed_by="anonymous",
            details=f"Login attempt with deleted account email: {email}",
            now=now,
            client=client,
        )
        return AuthOutcome(
            state,
            BusinessRuleError(
                "This account has been permanently deleted and cannot be restored. "
                "Please contact support if you believe this is an error."
            ),
        )

    if len(password or "") < policy.login_min_password_length:
        state = log_authentication(
            state, email=email, action="login_failed", success=False, now=now, client=client, reason="Invalid password"
        )
        return AuthOutcome(state, BusinessRuleError("Invalid email or password. Please try again."))

    user = next((u for u in state.accounts if u.email.lower() == email.lower()), None)
    if user is None:
        profile = dict(demo_profile or {})
        user = User(
            id=str(profile.pop("id", "1")),
            email=email,
            first_name=profile.pop("first_name", ""),
            last_name=profile.pop("last_name", ""),
            created_at=now,
            status="active",
            email_verified=True,
            **{k: v for k, v in profile.items() if k in _DEMO_PROFILE_FIELDS},
        )
    user = replace(user, last_login_at=now)

    state = log_authentication(
        state,
        email=email,
        action="login_success",
        success=True,
        now=now,
        client=client,
        user_id=user.id,
        metadata={"login_method": "email_password"},
    )
    return AuthOutcome(replace(state, user=user, is_authenticated=True), value=user)


def logout(state: AuthState, *, now: datetime, client: ClientInfo = ClientInfo()) -> AuthOutcome:
    if state.user is not None:
        state = log_authentication(
            state,
            email=state.user.email,
            action="logout",
            success=True,
            now=now,
            client=client,
            reason="User logout",
            user_id=state.user.id,
        )
    return AuthOutcome(replace(state, user=None, is_authenticated=False))


# ---------------- Registration ----------------
def register(
    state: AuthState,
    request: RegistrationRequest,
    *,
    now: datetime,
    policy: AuthPolicy = AuthPolicy(),
    client: ClientInfo = ClientInfo(),
    token_factory: TokenFactory = default_token,
) -> AuthOutcome:
    if not validate_email_format(request.email):
        return AuthOutcome(state, ValidationError("Please enter a valid email address."))
    if not validate_password(request.password, policy):
        missing = [name for name, ok in password_checks(request.password, policy).items() if not ok]
        return AuthOutcome(state, ValidationError("Password does not meet requirements: " + ", ".join(missing)))
    if not request.first_name.strip() or not request.last_name.strip():
        return AuthOutcome(state, ValidationError("First and last name are required."))

    if check_email_exists(state, request.email):
        state = log_authentication(
            state,
            email=request.email,
            action="registration_attempt",
            success=False,
            now=now,
            client=client,
            reason="Email already registered",
            metadata={"attempted_email": request.email},
        )
        return AuthOutcome(
            state,
            BusinessRuleError(
                "An account with this email address already exists. "
                "Please use a different email or try logging in."
            ),
        )

    deleted = check_deleted_account(state, request.email, request.phone)
    if deleted is not None:
        state = log_registration_attempt(
            state,
            request,
            now=now,
            client=client,
            blocked=True,
            block_reason="Email/phone associated with permanently deleted account",
            deleted_account_id=deleted.id,
        )
        state = log_authentication(
            state,
            email=request.email,
            action="registration_attempt",
            success=False,
            now=now,
            client=client,
            reason="Attempted registration with deleted account credentials",
            metadata={"deleted_account_id": deleted.id},
        )
        phone_note = f", Phone: {request.phone}" if request.phone else ""
        state = add_deletion_audit_entry(
            state,
            deleted.id,
            action="reregistration_attempted",
            performed_by="anonymous",
            details=f"Registration attempt with deleted account credentials. Email: {request.email}{phone_note}",
            now=now,
            client=client,
        )
        return AuthOutcome(
            state,
            BusinessRuleError(
                "This email address or phone number is associated with a permanently deleted account "
                "and cannot be used for registration. Please use different credentials or contact support."
            ),
        )

    similar = find_similar_deleted_account(state, request)
    if similar is not None:
        state = log_registration_attempt(
            state,
            request,
            now=now,
            client=client,
            blocked=True,
            block_reason="Similar personal information to deleted account",
            deleted_account_id=similar.id,
        )
        state = log_authentication(
            state,
            email=request.email,
            action="registration_attempt",
            success=False,
            now=now,
            client=client,
            reason="Similar personal information to deleted account",
            metadata={"similar_account_id": similar.id},
        )
        state = add_deletion_audit_entry(
            state,
            similar.id,
            action="reregistration_attempted",
            performed_by="anonymous",
            details="Registration attempt with similar personal information to deleted account",
            now=now,
            client=client,
        )
        return AuthOutcome(
            state, BusinessRuleError("Registration blocked due to security policies. Please contact support for assistance.")
        )

    state = log_registration_attempt(state, request, now=now, client=client, blocked=False)
    user = User(
        id=_new_id("user"),
        email=request.email,
        first_name=request.first_name.strip(),
        last_name=request.last_name.strip(),
        role=request.role,
        company=request.company,
        phone=request.phone,
        created_at=now,
    )
    state = replace(
        state,
        registered_emails=state.registered_emails + (request.email.lower(),),
        accounts=state.accounts + (user,),
    )
    sent = send_email_verification(state, request.email, now=now, policy=policy, token_factory=token_factory)
    state = log_authentication(
        sent.state,
        email=request.email,
        action="registration_attempt",
        success=True,
        now=now,
        client=client,
        user_id=user.id,
        metadata={"registration_method": "email_password", "email_verification_sent": True},
    )
    return AuthOutcome(replace(state, user=user, is_authenticated=True), value=user)


# ---------------- Profile ----------------
def update_user(state: AuthState, changes: Dict[str, Any]) -> AuthOutcome:
    if state.user is None:
        return AuthOutcome(state, NotAuthenticatedError("You must be signed in to update your profile."))
    unknown = sorted(set(changes) - PROFILE_FIELDS)
    if unknown:
        return AuthOutcome(state, ValidationError(f"Unknown profile fields: {', '.join(unknown)}"))
    return _replace_user(state, replace(state.user, **changes))


def merge_preferences(current: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    merged = _copy_prefs(current)
    for section, values in (changes or {}).items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section] = {**merged[section], **values}
        else:
            merged[section] = values
    return merged


def update_preferences(state: AuthState, changes: Dict[str, Any]) -> AuthOutcome:
    if state.user is None:
        return AuthOutcome(state, NotAuthenticatedError("You must be signed in to update preferences."))
    user = replace(state.user, preferences=merge_preferences(state.user.preferences, changes))
    return _replace_user(state, user)


def _replace_user(state: AuthState, user: User) -> AuthOutcome:
    accounts = tuple(user if u.id == user.id else u for u in state.accounts)
    return AuthOutcome(replace(state, user=user, accounts=accounts), value=user)


# ---------------- Deletion ----------------
def delete_account(
    state: AuthState,
    reason: str,
    confirmation: str,
    *,
    now: datetime,
    policy: AuthPolicy = AuthPolicy(),
    client: ClientInfo = ClientInfo(),
) -> AuthOutcome:
    user = state.user
    if user is None:
        return AuthOutcome(state, NotAuthenticatedError("No user to delete"))
    if confirmation != policy.deletion_phrase:
        return AuthOutcome(state, ValidationError(f'Please type "{policy.deletion_phrase}" to confirm'))
    if not (reason or "").strip():
        return AuthOutcome(state, ValidationError("Please provide a reason for account deletion"))

    record = DeletedAccount(
        id=_new_id("del"),
        original_user_id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        deleted_at=now,
        deletion_reason=reason,
        deleted_by=user.id,
        ip_address=client.ip_address,
        user_agent=client.user_agent,
        data_retention_until=now + policy.data_retention,
        audit_trail=(
            DeletionAuditEntry(
                id=_new_id("audit"),
                timestamp=now,
                action="account_deleted",
                performed_by=user.id,
                details=f"User initiated account deletion. Reason: {reason}",
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            ),
        ),
    )
    email_l = user.email.lower()
    deleted_user = replace(user, status="deleted", deleted_at=now, deletion_reason=reason)
    state = replace(
        state,
        registered_emails=tuple(e for e in state.registered_emails if e != email_l),
        deleted_accounts=state.deleted_accounts + (record,),
        accounts=tuple(u for u in state.accounts if u.id != user.id),
    )
    state = log_authentication(
        state,
        email=user.email,
        action="account_deleted",
        success=True,
        now=now,
        client=client,
        reason="Account deletion completed",
        user_id=user.id,
        metadata={"reason": reason},
    )
    return AuthOutcome(replace(state, user=deleted_user, is_authenticated=False), value=record)


# ---------------- Seed ----------------
def _deleted_from_seed(raw: Dict[str, Any]) -> DeletedAccount:
    trail = tuple(
        DeletionAuditEntry(
            id=e["id"],
            timestamp=parse_datetime(e["timestamp"]),
            action=e["action"],
            performed_by=e["performed_by"],
            details=e.get("details", ""),
            ip_address=e.get("ip_address"),
            user_agent=e.get("user_agent"),
        )
        for e in raw.get("audit_trail", [])
    )
    return DeletedAccount(
        id=raw["id"],
        original_user_id=raw["original_user_id"],
        email=raw["email"],
        first_name=raw.get("first_name", ""),
        last_name=raw.get("last_name", ""),
        phone=raw.get("phone"),
        deleted_at=parse_datetime(raw["deleted_at"]),
        deletion_reason=raw.get("deletion_reason", ""),
        deleted_by=raw.get("deleted_by", ""),
        ip_address=raw.get("ip_address"),
        user_agent=raw.get("user_agent"),
        data_retention_until=parse_datetime(raw.get("data_retention_until")),
        audit_trail=trail,
    )


def state_from_seed(seed: Optional[Dict[str, Any]] = None) -> AuthState:
    seed = load_seed(AUTH_SEED_FILE) if seed is None else seed
    return AuthState(
        registered_emails=tuple(e.lower() for e in seed.get("registered_emails", [])),
        deleted_accounts=tuple(_deleted_from_seed(d) for d in seed.get("deleted_accounts", [])),
    )


def trim_history(state: AuthState, policy: AuthPolicy = AuthPolicy()) -> AuthState:
    """Keep only the newest ``policy.max_history`` auth logs and registration attempts."""
    limit = policy.max_history
    if len(state.authentication_logs) <= limit and len(state.registration_attempts) <= limit:
        return state
    return replace(
        state,
        authentication_logs=state.authentication_logs[-limit:],
        registration_attempts=state.registration_attempts[-limit:],
    )


class AuthStore:
    """Holds the live :class:`AuthState` and applies reducers to it.

    Each read-reduce-commit cycle runs under a lock, so concurrent requests
    served from a thread pool never drop each other's log entries.
    """

    def __init__(
        self,
        state: Optional[AuthState] = None,
        *,
        policy: Optional[AuthPolicy] = None,
        clock: Callable[[], datetime] = _utcnow,
        token_factory: TokenFactory = default_token,
        demo_profile: Optional[Dict[str, Any]] = None,
    ) -> None:
        if state is None:
            seed = load_seed(AUTH_SEED_FILE)
            state = state_from_seed(seed)
            demo_profile = demo_profile if demo_profile is not None else seed.get("demo_profile")
        self.state = state
        self.policy = policy or AuthPolicy()
        self.clock = clock
        self.token_factory = token_factory
        self.demo_profile = demo_profile or {}
        self._lock = threading.Lock()

    def _apply(self, reducer: Callable[..., AuthOutcome], *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            outcome = reducer(self.state, *args, **kwargs)
            self.state = trim_history(outcome.state, self.policy)
        if outcome.error is not None:
            raise outcome.error
        return outcome.value

    def login(self, email: str, password: str, client: ClientInfo = ClientInfo()) -> User:
        return self._apply(
            login,
            email,
            password,
            now=self.clock(),
            policy=self.policy,
            client=client,
            demo_profile=self.demo_profile,
        )

    def logout(self, client: ClientInfo = ClientInfo()) -> None:
        self._apply(logout, now=self.clock(), client=client)

    def register(self, request: RegistrationRequest, client: ClientInfo = ClientInfo()) -> User:
        return self._apply(
            register, request, now=self.clock(), policy=self.policy, client=client, token_factory=self.token_factory
        )

    def lockout(self, email: str) -> Lockout:
        with self._lock:
            return check_account_lockout(self.state, email, self.clock(), self.policy)

    def verify_email(self, token: str) -> bool:
        return self._apply(verify_email, token, now=self.clock())

    def resend_email_verification(self, email: str) -> str:
        return self._apply(
            resend_email_verification, email, now=self.clock(), policy=self.policy, token_factory=self.token_factory
        )

    def update_user(self, changes: Dict[str, Any]) -> User:
        return self._apply(update_user, changes)

    def update_preferences(self, changes: Dict[str, Any]) -> User:
        return self._apply(update_preferences, changes)

    def delete_account(self, reason: str, confirmation: str, client: ClientInfo = ClientInfo()) -> DeletedAccount:
        return self._apply(delete_account, reason, confirmation, now=self.clock(), policy=self.policy, client=client)

    def recent_logs(self, limit: int = 50) -> List[AuthLog]:
        return list(self.state.authentication_logs[-limit:])
