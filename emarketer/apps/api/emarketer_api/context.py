"""Request context management for observability.

Context variables carry per-request identifiers across async boundaries so
that every log line can be correlated with the request, caller and tenant.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Authenticated caller (Supabase user id)
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# Company (tenant) the current request operates on
company_id_var: ContextVar[str] = ContextVar("company_id", default="")

# Sync run currently being processed
sync_log_id_var: ContextVar[str] = ContextVar("sync_log_id", default="")
