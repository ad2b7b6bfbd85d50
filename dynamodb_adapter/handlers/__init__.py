"""
Handler Layer for the DynamoDB Adapter

Application-facing façade over the Collection accessor, split the CQRS way:
- commands.py: Command, write operations and single-item get
- queries.py: Query, fluent query/scan builder with explicit pagination

Architecture:
adapter -> handlers/ (this layer) -> core/ (Collection, gateway) -> DynamoDB
"""

from .commands import Command
from .queries import Query

__all__ = [
    'Command',
    'Query',
]
