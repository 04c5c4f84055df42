"""Top-level application package for the bookkeeping API.

This package contains everything required to run the FastAPI backend of a
personal bookkeeping service: database models, Pydantic schemas, the
account ledger and purge services, group expense splitting, and the API
routers. The default configuration uses a local SQLite database stored in
``bookkeeper.db`` when no ``DATABASE_URL`` is provided.

To run the API locally you can execute:

```bash
uvicorn bookkeeper.api.main:app --reload
```
"""

__all__: list[str] = []
