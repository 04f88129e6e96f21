"""Application-wide constants.

This module defines constants used throughout the application
to avoid magic numbers and ensure consistency.
"""

# Hash lengths
SHA256_HEX_LENGTH = 64

# String field lengths
MAX_EMAIL_LENGTH = 255
MAX_NAME_LENGTH = 255
MAX_TITLE_LENGTH = 500
MAX_PRODUCT_CODE_LENGTH = 20
MAX_ISSUE_KEY_LENGTH = 40

# Password hashing
BCRYPT_ROUNDS = 12

# Secret key requirements
MIN_SECRET_KEY_LENGTH = 32
DEFAULT_INSECURE_SECRET = "change-me-in-production"

# Issue keys
ISSUE_NUMBER_MIN_WIDTH = 3

# API keys: "tk_" followed by 64 hex characters
API_KEY_PREFIX = "tk_"
API_KEY_RANDOM_BYTES = 32
API_KEY_LENGTH = len(API_KEY_PREFIX) + SHA256_HEX_LENGTH
API_KEY_DISPLAY_PREFIX_LENGTH = 10
API_KEY_DEFAULT_RATE_LIMIT = 100
API_KEY_MAX_RATE_LIMIT = 1000
API_KEY_RATE_WINDOW_SECONDS = 60
API_KEY_SCOPE_READ = "read"
API_KEY_SCOPE_TICKETS_READ = "tickets:read"
API_KEY_DEFAULT_SCOPES = (API_KEY_SCOPE_READ,)

# Work items
DEFAULT_PRIORITY = 3
