"""Source repository client and concurrency helpers."""

from .async_utils import run_bounded
from .client import DevOpsClient

__all__ = ["DevOpsClient", "run_bounded"]
