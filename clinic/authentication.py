"""
Token authentication used by the dashboards.

Kept apart from the views so that DRF can import it while loading
settings without pulling in the view modules.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """``Authorization: Token <key>``; JWT bearer tokens are handled by simplejwt."""

    keyword = 'Token'
