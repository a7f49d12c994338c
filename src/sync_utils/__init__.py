"""
Shared utilities for the HRIS directory sync engine

Provides:
- logging: structured/console logging setup
- retry: exponential backoff for transient HR database and directory failures
- sql_safety: identifier validation for the HR extraction query
- tracing: OpenTelemetry span helpers
- vault_client: HashiCorp Vault integration for credentials
"""

__version__ = "1.0.0"
__all__ = ["logging", "retry", "sql_safety", "tracing", "vault_client"]
