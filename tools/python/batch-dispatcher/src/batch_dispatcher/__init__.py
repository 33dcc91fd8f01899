"""
Batch Dispatcher
=================
Fan a geocoding or reverse-geocoding request out to every registered
provider and collect one result per provider, in serie or in parallel.

Public API::

    from batch_dispatcher import Batch, Geocoder, NominatimProvider
"""

from batch_dispatcher.batch import Batch, BatchConfig
from batch_dispatcher.models import BatchResult, Coordinate, Task, TaskKind, TaskOutcome
from batch_dispatcher.providers import Geocoder, GoogleProvider, NominatimProvider, Provider
from batch_dispatcher.tool import BatchDispatchTool

__all__ = [
    "Batch",
    "BatchConfig",
    "BatchDispatchTool",
    "BatchResult",
    "Coordinate",
    "Geocoder",
    "GoogleProvider",
    "NominatimProvider",
    "Provider",
    "Task",
    "TaskKind",
    "TaskOutcome",
]
__version__ = "1.0.0"
