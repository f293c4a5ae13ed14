# app/core/rate_limit.py

from slowapi import Limiter
from slowapi.util import get_remote_address

# Keyed by client address; attached to app.state.limiter in main.py
limiter = Limiter(key_func=get_remote_address)
