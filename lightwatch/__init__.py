from lightwatch.models import (
    AggregateView, Alert, DeliveryResult, Direction, DispatchOutcome,
    Reading, SensorState, Transition,
)
from lightwatch.monitor import LightMonitor
from lightwatch.scheduler import PollScheduler, SchedulerState
from lightwatch.settings import ConfigStore, Settings

__version__ = "0.1.0"

__all__ = [
    'AggregateView', 'Alert', 'DeliveryResult', 'Direction', 'DispatchOutcome',
    'Reading', 'SensorState', 'Transition',
    'LightMonitor', 'PollScheduler', 'SchedulerState', 'ConfigStore', 'Settings',
]
