#!/usr/bin/env python3
"""
Create the document store tables (documents, document_unique_keys,
document_sequences) for the SQL backend.

Uses DATABASE_URL environment variable. Does NOT drop existing tables.
"""

from __future__ import annotations
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

# Make sure the backoffice package is importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError

from backoffice.database.docstore_real import SQLDocumentStore
from backoffice.records.contracts import MEMBER_CONSTRAINTS, RELATIONSHIP_CONSTRAINTS


def main() -> int:
    url = os.environ.get("DATABASE_URL")
    if not url:
        print("DATABASE_URL is not set", file=sys.stderr)
        return 1

    try:
        store = SQLDocumentStore(url, constraints=RELATIONSHIP_CONSTRAINTS + MEMBER_CONSTRAINTS)

        with store.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("Database connection OK")

        # Only missing tables are created
        store.create_tables()
        tables = inspect(store.engine).get_table_names()
        print("Document store tables now exist:", sorted(tables))
        return 0

    except OperationalError as e:
        print(f"Failed to connect to database: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    sys.exit(main())
