"""
Trading helpers built on the order gateway.

- scheduled_runner: drift-corrected recurring actions with cancellation
- dca: dollar-cost averaging plans
"""

from .scheduled_runner import ScheduledJob, ScheduledOrderRunner
from .dca import DcaPlan, DcaRun, start_dca

__all__ = ['ScheduledJob', 'ScheduledOrderRunner', 'DcaPlan', 'DcaRun', 'start_dca']
