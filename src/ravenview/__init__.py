"""ravenview — async client core for the Raven fleet telematics API."""

from ravenview.auth.executor import execute_authenticated
from ravenview.concurrency.limiter import run_with_concurrency
from ravenview.core import RavenView
from ravenview.session import RavenSession

__version__ = "0.1.0"

__all__ = ["RavenView", "RavenSession", "execute_authenticated", "run_with_concurrency"]
