"""Supabase client configuration for auth operations.

Supabase Auth is the identity provider: the API verifies session JWTs with
it and proxies sign-up / password login. It never sees a raw password
outside those two calls and never logs one.

KEY NAMING:
- SUPABASE_ANON_KEY (canonical for this deployment)
- NEXT_PUBLIC_SUPABASE_ANON_KEY / NEXT_PUBLIC_SUPABASE_URL are accepted so the
  API can share the dashboard's env file
"""

import logging
import os
from functools import lru_cache

from supabase import Client, create_client

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_supabase_url() -> str:
    """Get Supabase project URL from environment.

    Raises:
        RuntimeError: If SUPABASE_URL not set
    """
    url = os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL")
    if not url:
        raise RuntimeError(
            "SUPABASE_URL environment variable not set. "
            "Required for session verification and auth endpoints."
        )
    return url


@lru_cache(maxsize=1)
def get_supabase_anon_key() -> str:
    """Get Supabase anon (publishable) key from environment.

    Raises:
        RuntimeError: If no key is set
    """
    key = os.getenv("SUPABASE_ANON_KEY")
    if key:
        return key

    key = os.getenv("NEXT_PUBLIC_SUPABASE_ANON_KEY")
    if key:
        logger.info("Using NEXT_PUBLIC_SUPABASE_ANON_KEY (consider setting SUPABASE_ANON_KEY)")
        return key

    raise RuntimeError(
        "Neither SUPABASE_ANON_KEY nor NEXT_PUBLIC_SUPABASE_ANON_KEY environment variable is set."
    )


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Get Supabase client for auth operations.

    Returns:
        Client: Supabase client instance

    Raises:
        RuntimeError: If environment variables not set
    """
    url = get_supabase_url()
    api_key = get_supabase_anon_key()

    logger.info(
        "Initializing Supabase client",
        extra={"supabase_url": url, "key_type": "anon"},
    )

    return create_client(url, api_key)
