"""
Rate limiting for the account forms
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from quicknote.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

# Sign in and sign up
AUTH_RATE_LIMIT = "5/minute"

# Anything that sends an email or changes a password
PASSWORD_RATE_LIMIT = "3/minute"
