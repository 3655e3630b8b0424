"""Async Notion clients with data source discovery.

Each team brings its own integration token, so clients are cached per token
instead of as a single global. The data_source_id for a database is
discovered on first use (required by Notion API 2025-09-03) and cached per
database.
"""

from notion_client import AsyncClient

_clients: dict[str, AsyncClient] = {}
_data_source_ids: dict[str, str] = {}


def get_notion_client(token: str) -> AsyncClient:
    """Return a cached async Notion client for ``token``."""
    client = _clients.get(token)
    if client is None:
        client = AsyncClient(auth=token)
        _clients[token] = client
    return client


async def get_data_source_id(client: AsyncClient, database_id: str) -> str:
    """Discover and cache the data_source_id of ``database_id``.

    Uses databases.retrieve() to find the data_sources array, then caches
    the first entry. Raises RuntimeError if no data sources are found.
    """
    data_source_id = _data_source_ids.get(database_id)
    if data_source_id is None:
        db = await client.databases.retrieve(database_id=database_id)
        data_sources = db.get("data_sources", [])
        if not data_sources:
            raise RuntimeError(
                f"No data sources found for database {database_id}. "
                "Ensure the database exists and has at least one data source."
            )
        data_source_id = data_sources[0]["id"]
        _data_source_ids[database_id] = data_source_id
    return data_source_id


def reset_client() -> None:
    """Reset cached clients and data source ids. Used for testing."""
    _clients.clear()
    _data_source_ids.clear()
