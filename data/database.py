"""
Database Module for the Blog Application

This module handles all database connections and operations for the blog.
It implements the PostStore, CommentStore, SubscriberStore and EmailLogStore
protocols over a SQL Server database reached through ODBC.

Tables: blogs, blog_comments (ON DELETE CASCADE to blogs), newsletter_subscribers
(unique email), email_logs. Search uses the full-text index on blogs.
"""

import json
import pyodbc
import pandas as pd
from typing import Optional, List, Dict, Any

from config import settings
from utils.exceptions import (
    BlogError, ConnectionError, QueryError, DuplicateError, PermissionError
)
from utils.logger import get_logger

logger = get_logger(__name__)

# Normalized field name -> blogs column
POST_COLUMNS = {
    'title': 'title',
    'slug': 'slug',
    'content': 'content',
    'excerpt': 'excerpt',
    'category': 'blog_topic',
    'tags': 'tags',
    'featured_image': 'featured_image',
    'is_published': 'is_published',
    'is_featured': 'is_featured',
    'author_name': 'author_name',
    'created_at': 'created_at',
    'updated_at': 'updated_at',
    'published_at': 'published_at',
}

COMMENT_COLUMNS = {
    'post_id': 'blog_id',
    'parent_id': 'parent_id',
    'author_name': 'author_name',
    'author_email': 'author_email',
    'content': 'content',
    'status': 'status',
}

SUBSCRIBER_COLUMNS = {
    'email': 'email',
    'name': 'name',
    'subscription_source': 'subscription_source',
    'is_active': 'is_active',
}


def _to_columns(record: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    """Translate normalized keys to column names, dropping unknown keys."""
    columns = {}
    for key, value in record.items():
        if key not in mapping:
            continue
        if key == 'tags':
            value = json.dumps(list(value or []))
        columns[mapping[key]] = value
    return columns


class DatabaseConnection:
    """Database connection manager for the blog application."""

    def __init__(self, connection_string: Optional[str] = None):
        """Initialize the database connection."""
        self.connection_string = connection_string or settings.DB_CONNECTION_STRING
        self.conn = None
        pyodbc.pooling = False

    def connect(self) -> bool:
        """
        Establish a connection to the database.

        Returns:
            bool: True if connection was successful, False otherwise.

        Raises:
            ConnectionError: Re-raised untouched if the driver raises it.
        """
        try:
            self.conn = pyodbc.connect(self.connection_string)
            self.conn.setdecoding(pyodbc.SQL_CHAR, encoding='utf-8')
            logger.info("Successfully connected to database")
            return True
        except ConnectionError:
            raise
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            self.conn = None
            return False

    def close(self) -> None:
        """Close the database connection."""
        try:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.info("Database connection closed")
        except Exception as e:
            logger.error(f"Error closing database connection: {e}")

    def _ensure_connected(self) -> None:
        if not self.conn and not self.connect():
            raise ConnectionError("Database is unreachable")

    def _rollback(self) -> None:
        try:
            if self.conn:
                self.conn.rollback()
        except Exception:
            logger.debug("Rollback failed", exc_info=True)

    @staticmethod
    def _translate_error(error: Exception) -> BlogError:
        """Map a driver exception onto the application error taxonomy."""
        message = str(error)
        lowered = message.lower()
        sqlstate = str(error.args[0]) if getattr(error, 'args', None) else ''

        if isinstance(error, pyodbc.IntegrityError) and ('duplicate' in lowered or 'unique' in lowered):
            return DuplicateError(message)
        if sqlstate == '42501' or 'permission was denied' in lowered:
            return PermissionError(message)
        if isinstance(error, (pyodbc.OperationalError, pyodbc.InterfaceError)):
            return ConnectionError(message)
        return QueryError(message)

    def _run(self, query: str, params: Optional[tuple] = None, commit: bool = False) -> Optional[List[Dict]]:
        """
        Execute one statement and return its rows (None for statements without a result set).

        Raises:
            BackendError: Subclass matching the driver failure.
        """
        self._ensure_connected()
        try:
            cursor = self.conn.cursor()
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)

            rows = None
            if cursor.description:
                columns = [column[0] for column in cursor.description]
                rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
            if commit:
                self.conn.commit()
            return rows

        except BlogError:
            self._rollback()
            raise
        except Exception as e:
            logger.error(f"Error executing query: {e}")
            self._rollback()
            raise self._translate_error(e) from e

    # =========================================================================
    # Posts
    # =========================================================================

    def count_posts(self, published_only: bool = True) -> int:
        query = "SELECT COUNT(*) AS total FROM [dbo].[blogs]"
        if published_only:
            query += " WHERE [is_published] = 1"
        rows = self._run(query)
        return int(rows[0]['total']) if rows else 0

    def fetch_posts(self, offset: int, limit: int, published_only: bool = True) -> List[Dict[str, Any]]:
        if published_only:
            query = """
            SELECT * FROM [dbo].[blogs]
            WHERE [is_published] = 1
            ORDER BY [published_at] DESC
            OFFSET ? ROWS FETCH NEXT ? ROWS ONLY
            """
        else:
            query = """
            SELECT * FROM [dbo].[blogs]
            ORDER BY [created_at] DESC
            OFFSET ? ROWS FETCH NEXT ? ROWS ONLY
            """
        return self._run(query, (offset, limit)) or []

    def fetch_post_by_id(self, post_id: str) -> Optional[Dict[str, Any]]:
        rows = self._run("SELECT * FROM [dbo].[blogs] WHERE [id] = ?", (post_id,))
        return rows[0] if rows else None

    def fetch_post_by_slug(self, slug: str, published_only: bool = True) -> Optional[Dict[str, Any]]:
        query = "SELECT * FROM [dbo].[blogs] WHERE [slug] = ?"
        if published_only:
            query += " AND [is_published] = 1"
        rows = self._run(query, (slug,))
        return rows[0] if rows else None

    def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        if exclude_id:
            rows = self._run(
                "SELECT COUNT(*) AS total FROM [dbo].[blogs] WHERE [slug] = ? AND [id] <> ?",
                (slug, exclude_id)
            )
        else:
            rows = self._run("SELECT COUNT(*) AS total FROM [dbo].[blogs] WHERE [slug] = ?", (slug,))
        return bool(rows and rows[0]['total'])

    def search_posts(self, query: str, limit: int) -> List[Dict[str, Any]]:
        sql = """
        SELECT TOP (?) * FROM [dbo].[blogs]
        WHERE [is_published] = 1
        AND FREETEXT(([title], [content], [excerpt]), ?)
        ORDER BY [published_at] DESC
        """
        return self._run(sql, (limit, query)) or []

    def fetch_featured_posts(self, limit: int) -> List[Dict[str, Any]]:
        query = """
        SELECT TOP (?) * FROM [dbo].[blogs]
        WHERE [is_published] = 1 AND [is_featured] = 1
        ORDER BY [published_at] DESC
        """
        return self._run(query, (limit,)) or []

    def fetch_posts_by_topic(self, topic: str, limit: int) -> List[Dict[str, Any]]:
        query = """
        SELECT TOP (?) * FROM [dbo].[blogs]
        WHERE [is_published] = 1 AND [blog_topic] = ?
        ORDER BY [published_at] DESC
        """
        return self._run(query, (limit, topic)) or []

    def insert_post(self, record: Dict[str, Any]) -> Dict[str, Any]:
        columns = _to_columns(record, POST_COLUMNS)
        names = ", ".join(f"[{name}]" for name in columns)
        placeholders = ", ".join("?" for _ in columns)
        query = f"INSERT INTO [dbo].[blogs] ({names}) OUTPUT inserted.* VALUES ({placeholders})"
        rows = self._run(query, tuple(columns.values()), commit=True)
        if not rows:
            raise QueryError("Insert returned no row")
        logger.info(f"Inserted blog post - slug: {record.get('slug')}")
        return rows[0]

    def update_post(self, post_id: str, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        columns = _to_columns(record, POST_COLUMNS)
        if not columns:
            return self.fetch_post_by_id(post_id)
        assignments = ", ".join(f"[{name}] = ?" for name in columns)
        query = f"UPDATE [dbo].[blogs] SET {assignments} OUTPUT inserted.* WHERE [id] = ?"
        rows = self._run(query, tuple(columns.values()) + (post_id,), commit=True)
        if not rows:
            return None
        logger.info(f"Updated blog post - id: {post_id}")
        return rows[0]

    def delete_post(self, post_id: str) -> bool:
        affected = self.execute_non_query("DELETE FROM [dbo].[blogs] WHERE [id] = ?", (post_id,))
        if affected:
            logger.info(f"Deleted blog post - id: {post_id}")
        return affected > 0

    def _increment(self, column: str, post_id: str) -> Optional[int]:
        # Single UPDATE statement: the store serializes concurrent increments.
        query = f"""
        UPDATE [dbo].[blogs]
        SET [{column}] = [{column}] + 1
        OUTPUT inserted.[{column}] AS new_count
        WHERE [id] = ?
        """
        rows = self._run(query, (post_id,), commit=True)
        return int(rows[0]['new_count']) if rows else None

    def increment_post_views(self, post_id: str) -> Optional[int]:
        return self._increment('view_count', post_id)

    def increment_post_likes(self, post_id: str) -> Optional[int]:
        return self._increment('likes_count', post_id)

    # =========================================================================
    # Reports
    # =========================================================================

    def get_post_stats(self, post_id: str) -> Optional[Dict[str, Any]]:
        rows = self._run(
            """
            SELECT [view_count], [likes_count], [comments_count]
            FROM [dbo].[blogs] WHERE [id] = ?
            """,
            (post_id,)
        )
        return rows[0] if rows else None

    def get_popular_posts(self, limit: int, days: int) -> pd.DataFrame:
        """
        Retrieve the most viewed posts published in the last `days` days.

        Returns:
            pd.DataFrame: title, slug, view_count, likes_count ordered by views.
        """
        query = """
        SELECT TOP (?) [title], [slug], [view_count], [likes_count]
        FROM [dbo].[blogs]
        WHERE [is_published] = 1
        AND [published_at] >= DATEADD(day, -?, SYSUTCDATETIME())
        ORDER BY [view_count] DESC
        """
        self._ensure_connected()
        try:
            return pd.read_sql(query, self.conn, params=[limit, days])
        except BlogError:
            raise
        except Exception as e:
            logger.error(f"Error retrieving popular posts: {e}")
            raise self._translate_error(e) from e

    # =========================================================================
    # Comments
    # =========================================================================

    def fetch_comments(self, post_id: str, status: str = "approved") -> List[Dict[str, Any]]:
        query = """
        SELECT * FROM [dbo].[blog_comments]
        WHERE [blog_id] = ? AND [status] = ?
        ORDER BY [created_at] ASC
        """
        return self._run(query, (post_id, status)) or []

    def fetch_comment_by_id(self, comment_id: str) -> Optional[Dict[str, Any]]:
        rows = self._run("SELECT * FROM [dbo].[blog_comments] WHERE [id] = ?", (comment_id,))
        return rows[0] if rows else None

    def insert_comment(self, record: Dict[str, Any]) -> Dict[str, Any]:
        columns = _to_columns(record, COMMENT_COLUMNS)
        names = ", ".join(f"[{name}]" for name in columns)
        placeholders = ", ".join("?" for _ in columns)
        self._ensure_connected()
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                f"INSERT INTO [dbo].[blog_comments] ({names}) OUTPUT inserted.* VALUES ({placeholders})",
                tuple(columns.values())
            )
            description = [column[0] for column in cursor.description]
            row = dict(zip(description, cursor.fetchone()))
            cursor.execute(
                "UPDATE [dbo].[blogs] SET [comments_count] = [comments_count] + 1 WHERE [id] = ?",
                (record['post_id'],)
            )
            self.conn.commit()
            logger.info(f"Inserted comment for blog id: {record['post_id']}")
            return row
        except BlogError:
            self._rollback()
            raise
        except Exception as e:
            logger.error(f"Error inserting comment: {e}")
            self._rollback()
            raise self._translate_error(e) from e

    # =========================================================================
    # Newsletter subscribers
    # =========================================================================

    def fetch_subscriber(self, email: str) -> Optional[Dict[str, Any]]:
        rows = self._run("SELECT TOP 1 * FROM [dbo].[newsletter_subscribers] WHERE [email] = ?", (email,))
        return rows[0] if rows else None

    def insert_subscriber(self, record: Dict[str, Any]) -> Dict[str, Any]:
        columns = _to_columns(record, SUBSCRIBER_COLUMNS)
        names = ", ".join(f"[{name}]" for name in columns)
        placeholders = ", ".join("?" for _ in columns)
        query = f"INSERT INTO [dbo].[newsletter_subscribers] ({names}) OUTPUT inserted.* VALUES ({placeholders})"
        rows = self._run(query, tuple(columns.values()), commit=True)
        if not rows:
            raise QueryError("Insert returned no row")
        return rows[0]

    def set_subscriber_active(self, email: str, active: bool) -> bool:
        affected = self.execute_non_query(
            "UPDATE [dbo].[newsletter_subscribers] SET [is_active] = ? WHERE [email] = ?",
            (1 if active else 0, email)
        )
        return affected > 0

    def fetch_active_subscribers(self) -> List[Dict[str, Any]]:
        query = """
        SELECT [id], [email], [name], [subscription_source], [is_active], [created_at]
        FROM [dbo].[newsletter_subscribers]
        WHERE [is_active] = 1
        ORDER BY [created_at] ASC
        """
        return self._run(query) or []

    def count_active_subscribers(self) -> int:
        rows = self._run("SELECT COUNT(*) AS total FROM [dbo].[newsletter_subscribers] WHERE [is_active] = 1")
        return int(rows[0]['total']) if rows else 0

    # =========================================================================
    # Email log
    # =========================================================================

    def insert_email_log(self, record: Dict[str, Any]) -> None:
        self.execute_non_query(
            """
            INSERT INTO [dbo].[email_logs] ([email_type], [recipient_email], [subject], [status], [sent_at])
            VALUES (?, ?, ?, ?, ?)
            """,
            (record.get('email_type'), record.get('recipient_email'), record.get('subject'),
             record.get('status'), record.get('sent_at'))
        )

# Create a default database instance for use throughout the application
db = DatabaseConnection()
