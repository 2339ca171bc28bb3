"""Read-only Model Context Protocol tools for Azure Cosmos DB.

Architecture::

    MCP client ──► /mcp (app.py, Entra ID token + role)    or   stdio
                     │                                         │
                     ▼                                         ▼
               FastMCP streamable-HTTP app ──► mcp_server tool wrappers
                                                   │ worker thread
                                                   ▼
        validation ─► queries ─► CosmosClient ─► pagination / schema
                                     ▲
                  vector_search ─► Azure OpenAI embeddings

Tools:
    list_databases          - database ids in the account
    list_collections        - container ids in a database
    get_recent_documents    - newest N documents by ``_ts``
    text_search             - FullTextContains over one property
    find_document_by_id     - single document lookup
    get_approximate_schema  - type/frequency summary of a 10-document sample
    vector_search           - embedding + VectorDistance ranking
"""

__version__ = "1.0.0"
