"""Advisory engine — OSV + GHSA lookups, retry, credentials and merge."""

from depsentinel.engines.advisory.credentials import CredentialCache, default_credentials
from depsentinel.engines.advisory.ghsa_client import GHSAClient
from depsentinel.engines.advisory.merge import dedupe_advisories, merge_advisories
from depsentinel.engines.advisory.models import UnifiedAdvisory
from depsentinel.engines.advisory.osv_client import MAX_BATCH_SIZE, OSVClient
from depsentinel.engines.advisory.query import AdvisoryQueryEngine, QueryResult
from depsentinel.engines.advisory.retry import RetryPolicy

__all__ = [
    "MAX_BATCH_SIZE",
    "AdvisoryQueryEngine",
    "CredentialCache",
    "GHSAClient",
    "OSVClient",
    "QueryResult",
    "RetryPolicy",
    "UnifiedAdvisory",
    "dedupe_advisories",
    "default_credentials",
    "merge_advisories",
]
