"""
Configuration for seasonboard.

Static configuration is loaded from environment variables (with .env
support) into the class-level `Config`. There is no dynamic configuration:
cache TTLs and key names are fixed by the cache store.

Usage Examples
--------------
```python
from seasonboard.core.config import Config

Config.validate()

if Config.is_cluster():
    nodes = Config.REDIS_CLUSTER_NODES
```
"""

from seasonboard.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
