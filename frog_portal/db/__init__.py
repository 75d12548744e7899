"""
Database module - relational store and MongoDB connections.
"""
from frog_portal.db.postgres import get_db_session, execute_raw_sql, test_postgres_connection
from frog_portal.db.mongodb import get_mongo_db, test_mongo_connection

__all__ = [
    "get_db_session",
    "execute_raw_sql",
    "test_postgres_connection",
    "get_mongo_db",
    "test_mongo_connection"
]
