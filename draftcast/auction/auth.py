"""
Admin credentials for a tournament.

Three credential forms are accepted, checked in this order:
- Session token: Authorization: Bearer <jwt>, issued after a PIN check (24h)
- Master token: X-Master-Token: <jwt>, handed out once at creation (365d)
- PIN: "pin" field in the JSON body, checked against a salted SHA-256 hash

Tokens are HS256 JWTs issued by "draftcast" carrying tournamentId and type.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Mapping, Optional

import jwt

from .. import config
from .models import Tournament, now_ms
from .storage import Clock

logger = logging.getLogger(__name__)


def resolve_jwt_secret(secret: Optional[str] = None) -> str:
    """
    Pick the signing secret.

    Falls back to a development secret (with a warning) when none is
    configured, and warns when the configured one is short.
    """
    secret = secret if secret is not None else config.JWT_SECRET
    if not secret:
        logger.warning("DRAFTCAST_JWT_SECRET not set - using insecure development secret")
        return config.JWT_FALLBACK_SECRET
    if len(secret) < config.MIN_JWT_SECRET_LENGTH:
        logger.warning(f"DRAFTCAST_JWT_SECRET should be at least {config.MIN_JWT_SECRET_LENGTH} characters")
    return secret


# ===== PIN Hashing =====

def hash_pin(pin: str, tournament_id: str) -> str:
    """Hash a PIN with a tournament-specific salt."""
    salt = f"{config.PIN_SALT_PREFIX}:{tournament_id}:pin:v1"
    return hashlib.sha256(f"{salt}:{pin}".encode('utf-8')).hexdigest()


def verify_pin_hash(pin: str, tournament_id: str, stored_hash: str) -> bool:
    """Constant-time comparison of a PIN against its stored hash."""
    return hmac.compare_digest(hash_pin(pin, tournament_id), stored_hash or '')


# ===== Tokens =====

class TokenService:
    """Issues and verifies master and session tokens."""

    def __init__(self, secret: Optional[str] = None, clock: Optional[Clock] = None):
        self.secret = resolve_jwt_secret(secret)
        self._clock = clock or now_ms

    def _issue(self, tournament_id: str, token_type: str, lifetime_seconds: int, **claims) -> str:
        now = self._clock() // 1000
        payload = {
            'tournamentId': tournament_id,
            'type': token_type,
            'createdAt': now,
            'iat': now,
            'exp': now + lifetime_seconds,
            'sub': tournament_id,
            'iss': config.JWT_ISSUER,
        }
        payload.update(claims)
        return jwt.encode(payload, self.secret, algorithm=config.JWT_ALGORITHM)

    def generate_master_token(self, tournament_id: str) -> str:
        return self._issue(tournament_id, 'master', config.MASTER_TOKEN_EXPIRY_DAYS * 24 * 60 * 60)

    def generate_session_token(self, tournament_id: str) -> str:
        return self._issue(
            tournament_id,
            'session',
            config.SESSION_TOKEN_EXPIRY_HOURS * 60 * 60,
            sessionId=secrets.token_hex(16),
        )

    def verify(self, token: str, expected_type: str) -> Optional[dict]:
        """
        Verify a token's signature, issuer, expiry and type.

        Expiry is checked against the service clock rather than the system
        time so it follows the injected clock.

        Returns:
            Token payload, or None if the token is invalid, expired, or of
            another type
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[config.JWT_ALGORITHM],
                issuer=config.JWT_ISSUER,
                options={'verify_exp': False, 'verify_iat': False, 'require': ['exp', 'iss', 'sub']},
            )
        except jwt.PyJWTError as e:
            logger.debug(f"Rejected {expected_type} token: {e}")
            return None

        if payload.get('exp', 0) * 1000 <= self._clock():
            logger.debug(f"Rejected expired {expected_type} token")
            return None

        if payload.get('type') != expected_type:
            return None

        return payload

    def verify_master_token(self, token: str) -> Optional[dict]:
        return self.verify(token, 'master')

    def verify_session_token(self, token: str) -> Optional[dict]:
        return self.verify(token, 'session')


# ===== Credential Extraction =====

@dataclass
class Credentials:
    """Credentials presented with a request."""

    pin: Optional[str] = None
    master_token: Optional[str] = None
    session_token: Optional[str] = None

    def present(self) -> bool:
        return bool(self.pin or self.master_token or self.session_token)


def extract_credentials(headers: Mapping[str, str], body: Optional[dict] = None) -> Credentials:
    """Pull credentials from request headers and an optional JSON body."""
    session_token = None
    auth_header = headers.get('authorization') or headers.get('Authorization')
    if auth_header and auth_header.startswith('Bearer '):
        session_token = auth_header[len('Bearer '):].strip() or None

    master_token = headers.get('x-master-token') or headers.get('X-Master-Token') or None

    pin = None
    if isinstance(body, dict) and isinstance(body.get('pin'), str):
        pin = body['pin']

    return Credentials(pin=pin, master_token=master_token, session_token=session_token)


@dataclass
class AuthResult:
    authorized: bool
    reason: Optional[str] = None
    token_type: Optional[str] = None     # session / master / pin
    session_id: Optional[str] = None


def authorize(tournament: Tournament, credentials: Credentials, tokens: TokenService) -> AuthResult:
    """
    Check credentials against a tournament.

    Args:
        tournament: Tournament being accessed
        credentials: Credentials extracted from the request
        tokens: Token verifier

    Returns:
        AuthResult; authorized is False with a reason when no credential matched
    """
    if not credentials.present():
        return AuthResult(authorized=False, reason='No credentials provided')

    if credentials.session_token:
        payload = tokens.verify_session_token(credentials.session_token)
        if payload and payload.get('tournamentId') == tournament.id:
            return AuthResult(authorized=True, token_type='session', session_id=payload.get('sessionId'))

    if credentials.master_token:
        payload = tokens.verify_master_token(credentials.master_token)
        if payload and payload.get('tournamentId') == tournament.id:
            return AuthResult(authorized=True, token_type='master')

    if credentials.pin:
        if verify_pin_hash(credentials.pin, tournament.id, tournament.admin_pin_hash):
            return AuthResult(authorized=True, token_type='pin')

    return AuthResult(authorized=False, reason='Invalid credentials')
