from __future__ import annotations

from .batch import Batch
from .cache import MemoCache, fingerprint
from .deferred import Deferred
from .models.handle import Handle
from .models.result import Ko, Ok, Result
from .orchestrator import Context, Orchestrator
from .scheduler import Scheduler
from .timers import StepTimer

__all__ = ["Batch", "Context", "Deferred", "Handle", "Ko", "MemoCache", "Ok", "Orchestrator", "Result", "Scheduler", "StepTimer", "fingerprint"]
