"""
Configuration constants for the draftcast live auction service.
"""

import os

# League Defaults
DEFAULT_TEAM_SIZE = 8
DEFAULT_BASE_PRICES = {
    'APLUS': 2500,
    'BASE': 1000,
}
DEFAULT_BID_INCREMENT = 100
DEFAULT_CURRENCY = '₹'

# Captain and vice-captain are assigned before the auction, outside the biddable roster
RESERVED_SLOTS = 2

# Sold prices must land on this step
PRICE_STEP = 100

PLAYER_ROLES = ['Batsman', 'Bowler', 'All-rounder', 'WK-Batsman']
PLAYER_CATEGORIES = ['APLUS', 'BASE', 'CAPTAIN', 'VICE_CAPTAIN']
AVAILABILITY_OPTIONS = ['full', 'till_11', 'till_12', 'tentative']

DEFAULT_PAUSE_MESSAGE = 'Auction is paused. We will be back shortly.'
MAX_PAUSE_SECONDS = 3600
MAX_PAUSE_MESSAGE_LENGTH = 200

# ===== LIFECYCLE CONFIGURATION =====

TOURNAMENT_EXPIRY_DAYS = 90
READONLY_WINDOW_DAYS = 10       # Last N days before expiry are read-only
ARCHIVE_AFTER_COMPLETED_DAYS = 7
DRAFT_IDLE_DELETE_HOURS = 24
ARCHIVE_TTL_SECONDS = TOURNAMENT_EXPIRY_DAYS * 24 * 60 * 60

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000

# ===== AUTH CONFIGURATION =====

JWT_SECRET = os.environ.get('DRAFTCAST_JWT_SECRET', '')
JWT_FALLBACK_SECRET = 'dev-only-insecure-secret-change-in-prod-32chars'
JWT_ALGORITHM = 'HS256'
JWT_ISSUER = 'draftcast'
MIN_JWT_SECRET_LENGTH = 32
MASTER_TOKEN_EXPIRY_DAYS = 365
SESSION_TOKEN_EXPIRY_HOURS = 24

PIN_SALT_PREFIX = 'draftcast'
MIN_PIN_LENGTH = 4
MAX_PIN_LENGTH = 20

# ===== RATE LIMITS =====
# kind -> (limit, window seconds)

RATE_LIMITS = {
    'TOURNAMENT_CREATE': (3, 86400),    # 3 per day
    'API_READ': (1000, 3600),
    'API_WRITE': (100, 3600),
    'AUTH_ATTEMPT': (10, 900),          # 10 per 15 min
}
RATE_LIMIT_TTL_BUFFER_SECONDS = 60

# ===== AUDIT LOG =====

AUDIT_RETENTION_DAYS = 90
MAX_AUDIT_ENTRIES_PER_TOURNAMENT = 10000
AUDIT_DEFAULT_QUERY_LIMIT = 100

# ===== STORAGE =====

# Redis-over-HTTP endpoint; in-memory store is used when unset
KV_REST_URL = os.environ.get('DRAFTCAST_KV_URL', '')
KV_REST_TOKEN = os.environ.get('DRAFTCAST_KV_TOKEN', '')
KV_REQUEST_TIMEOUT = 10  # seconds

# ===== API SERVER =====

API_HOST = '127.0.0.1'
API_PORT = 8000
API_VERSION = '1.0.0'
CORS_ALLOW_ORIGINS = ['*']
CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Master-Token', 'X-Request-ID']
CORS_EXPOSE_HEADERS = ['X-RateLimit-Limit', 'X-RateLimit-Remaining', 'X-RateLimit-Reset', 'X-Request-ID']
HEALTH_LATENCY_WARN_MS = 1000

# Logging
LOG_LEVEL = os.environ.get('DRAFTCAST_LOG_LEVEL', 'INFO')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Audit CSV exports
EXPORT_DIR = 'data/exports'
