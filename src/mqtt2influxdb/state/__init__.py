"""State layer.

Holds the two pieces of shared, mutable state: the latest value per topic
path and the active mapping configuration. Both are internally locked and
hand out copies, never their live containers.
"""

from mqtt2influxdb.state.cache import ValueCache
from mqtt2influxdb.state.mappings import MappingStore

__all__ = ["MappingStore", "ValueCache"]
