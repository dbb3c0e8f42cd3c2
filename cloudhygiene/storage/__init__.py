"""DynamoDB persistence."""

from cloudhygiene.storage.dynamodb_store import (
    AlertStore,
    ScanStore,
    ScoreStore,
    Stores,
    UserConfigStore,
    create_stores,
    create_tables,
    table_definitions,
)

__all__ = [
    "AlertStore",
    "ScanStore",
    "ScoreStore",
    "Stores",
    "UserConfigStore",
    "create_stores",
    "create_tables",
    "table_definitions",
]
