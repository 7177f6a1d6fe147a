"""Document store selection."""

from __future__ import annotations

from clubspace.infra.documents import DocumentStore
from clubspace.infra.memory_documents import MemoryDocumentStore
from clubspace.infra.pg_documents import PostgresDocumentStore
from clubspace.settings import Settings, settings as default_settings


def create_document_store(config: Settings | None = None) -> DocumentStore:
	config = config or default_settings
	if config.document_store_backend == "memory":
		return MemoryDocumentStore()
	return PostgresDocumentStore(config=config)


__all__ = ["create_document_store"]
