"""MongoDB multi-document transactions.

Requires a replica set or sharded cluster; standalone servers reject
transactions.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from pymongo.asynchronous.mongo_client import AsyncMongoClient
from pymongo.asynchronous.client_session import AsyncClientSession


class MongoTransactionManager:
    def __init__(self, client: AsyncMongoClient) -> None:
        self._client = client

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncClientSession]:
        """Yield a session inside a transaction.

        Commits when the block exits normally, aborts when it raises.
        """
        async with self._client.start_session() as session:
            async with await session.start_transaction():
                yield session
