"""
Input rules for tournament slugs, admin PINs, entity ids and external URLs.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from .. import config
from .errors import ValidationError


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    code: Optional[str] = None


OK = ValidationResult(valid=True)


# ===== Slugs =====

SLUG_REGEX = re.compile(r'^[a-z0-9]([a-z0-9-]{0,48}[a-z0-9])?$')
MIN_SLUG_LENGTH = 3
MAX_SLUG_LENGTH = 50

RESERVED_SLUGS = {
    # System routes
    'api', 'admin', 'tournaments', 'health', 'broadcast', 'intelligence',
    'players', 'player', 'team', '_next', 'static', 'assets',
    # Auth routes
    'login', 'logout', 'signup', 'register', 'auth', 'oauth', 'callback',
    # Marketing routes
    'pricing', 'legal', 'support', 'draftcast', 'about', 'contact',
    'terms', 'privacy', 'help', 'docs', 'blog', 'news', 'press',
    # Ambiguous words
    'new', 'create', 'edit', 'delete', 'settings', 'profile', 'dashboard',
    'home', 'index', 'main', 'app', 'www', 'mail', 'ftp', 'cdn',
    # Auction terms
    'auction', 'bid', 'draft', 'league', 'cricket', 'ipl', 'bbl',
}


def normalize_slug(slug: Optional[str]) -> str:
    return (slug or '').strip().lower()


def validate_tournament_slug(slug: Optional[str]) -> ValidationResult:
    """
    Check a tournament slug.

    The slug is normalized (trimmed, lowercased) before checking.
    """
    slug = normalize_slug(slug)

    if not slug:
        return ValidationResult(False, 'Tournament ID is required', 'SLUG_REQUIRED')

    if len(slug) < MIN_SLUG_LENGTH:
        return ValidationResult(
            False, f"Tournament ID must be at least {MIN_SLUG_LENGTH} characters", 'SLUG_TOO_SHORT'
        )

    if len(slug) > MAX_SLUG_LENGTH:
        return ValidationResult(
            False, f"Tournament ID must be at most {MAX_SLUG_LENGTH} characters", 'SLUG_TOO_LONG'
        )

    if not SLUG_REGEX.match(slug):
        return ValidationResult(
            False,
            'Tournament ID can only contain lowercase letters, numbers, and hyphens. '
            'Must start and end with a letter or number.',
            'SLUG_INVALID_FORMAT',
        )

    if slug in RESERVED_SLUGS:
        return ValidationResult(False, 'This tournament ID is reserved', 'SLUG_RESERVED')

    if slug.isdigit():
        return ValidationResult(False, 'Tournament ID cannot be numbers only', 'SLUG_NUMERIC_ONLY')

    if '--' in slug:
        return ValidationResult(
            False, 'Tournament ID cannot contain consecutive hyphens', 'SLUG_CONSECUTIVE_HYPHENS'
        )

    return OK


# ===== PINs =====

WEAK_PINS = {
    '0000', '1111', '2222', '3333', '4444', '5555', '6666', '7777', '8888', '9999',
    '1234', '2345', '3456', '4567', '5678', '6789', '7890',
    '4321', '5432', '6543', '7654', '8765', '9876',
    '1212', '2121', '1313', '3131', '1414', '4141',
    '0123', '9012', '1230', '2340',
    '1122', '2233', '3344', '4455', '5566', '6677', '7788', '8899',
    'password', 'admin', '123456', 'qwerty', 'letmein',
}

KEYBOARD_ROWS = ['qwertyuiop', 'asdfghjkl', 'zxcvbnm', '1234567890']


def _is_sequential(pin: str) -> bool:
    """Ascending or descending run of digits, e.g. 34567 or 98765."""
    if not pin.isdigit() or len(pin) < 2:
        return False

    diffs = {int(b) - int(a) for a, b in zip(pin, pin[1:])}
    return diffs == {1} or diffs == {-1}


def _is_keyboard_pattern(pin: str) -> bool:
    return any(pin in row or pin in row[::-1] for row in KEYBOARD_ROWS)


def validate_admin_pin(pin: Optional[str]) -> ValidationResult:
    if not pin:
        return ValidationResult(False, 'Admin PIN is required', 'PIN_REQUIRED')

    if len(pin) < config.MIN_PIN_LENGTH:
        return ValidationResult(
            False, f"PIN must be at least {config.MIN_PIN_LENGTH} characters", 'PIN_TOO_SHORT'
        )

    if len(pin) > config.MAX_PIN_LENGTH:
        return ValidationResult(
            False, f"PIN must be at most {config.MAX_PIN_LENGTH} characters", 'PIN_TOO_LONG'
        )

    if pin.lower() in WEAK_PINS:
        return ValidationResult(
            False, 'This PIN is too common. Please choose a stronger PIN.', 'PIN_TOO_COMMON'
        )

    if len(set(pin)) == 1:
        return ValidationResult(False, 'PIN cannot be all the same character', 'PIN_ALL_SAME')

    if _is_sequential(pin):
        return ValidationResult(False, 'PIN cannot be a simple sequence', 'PIN_SEQUENTIAL')

    if len(pin) >= 6 and _is_keyboard_pattern(pin.lower()):
        return ValidationResult(False, 'PIN cannot be a keyboard pattern', 'PIN_KEYBOARD_PATTERN')

    return OK


# ===== Entity IDs and URLs =====

ID_REGEX = re.compile(r'^[a-z0-9_]+$')
MAX_ID_LENGTH = 50


def validate_entity_id(entity_id: Optional[str], entity_type: str) -> ValidationResult:
    if not entity_id or not entity_id.strip():
        return ValidationResult(False, f"{entity_type} ID is required", 'ID_REQUIRED')

    if len(entity_id) > MAX_ID_LENGTH:
        return ValidationResult(
            False, f"{entity_type} ID must be at most {MAX_ID_LENGTH} characters", 'ID_TOO_LONG'
        )

    if not ID_REGEX.match(entity_id):
        return ValidationResult(
            False,
            f"{entity_type} ID can only contain lowercase letters, numbers, and underscores",
            'ID_INVALID_FORMAT',
        )

    return OK


def validate_external_url(url: Optional[str]) -> ValidationResult:
    """Optional http(s) URL; empty is valid."""
    if not url:
        return OK

    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return ValidationResult(False, 'Invalid URL format', 'URL_INVALID_FORMAT')
    if parsed.scheme not in ('http', 'https'):
        return ValidationResult(False, 'URL must use HTTP or HTTPS protocol', 'URL_INVALID_PROTOCOL')

    return OK


def require_valid(result: ValidationResult, field: str) -> None:
    """
    Raise if a validation result failed.

    Raises:
        ValidationError: With the result's message and code in details
    """
    if not result.valid:
        raise ValidationError(result.error or 'Invalid value', field=field, details={'reason': result.code})
