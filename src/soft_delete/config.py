"""
Soft Delete Configuration

Environment-driven defaults shared by repositories, the purge worker and the admin API.
"""

import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./soft_delete.db")

# Column that stores the soft-delete timestamp when a repository does not name one
SOFT_DELETE_FIELD = os.getenv("SOFT_DELETE_FIELD", "deleted")

# Rows soft-deleted longer ago than this are purged by the retention worker
PURGE_RETENTION_DAYS = int(os.getenv("PURGE_RETENTION_DAYS", "30"))
PURGE_INTERVAL_SECONDS = int(os.getenv("PURGE_INTERVAL_SECONDS", "3600"))
PURGE_WORKER_LOG_LEVEL = os.getenv("PURGE_WORKER_LOG_LEVEL", "INFO")

# "package.module:function" returning a TableLocator for a session; used when the worker runs as a module
PURGE_LOCATOR_FACTORY = os.getenv("PURGE_LOCATOR_FACTORY", "")
