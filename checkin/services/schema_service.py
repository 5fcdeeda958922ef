# checkin/services/schema_service.py
"""
Physical answer columns for check-in questions.

Every global question owns one nullable YES/NO column on the check-in table,
named ``<prefix><base name>`` (``q_needs_resume``). The column is a projection
of "the question exists": adding or dropping it is safe to repeat.

DDL auto-commits on most engines, so nothing here relies on rollback. Column
names cannot be bound as parameters; every name passes ``validate_identifier``
before it is quoted into a statement.
"""
import logging
import re
from typing import List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from checkin.core.config import settings as default_settings, Settings
from checkin.core.exceptions import InvalidIdentifierError
from checkin.utils.audit_log import log_schema_change
from checkin.utils.naming import validate_identifier

logger = logging.getLogger(__name__)

ANSWER_VALUES = ("YES", "NO")

_ANSWER_SUFFIX_RE = re.compile(r"[a-z0-9_]+")


class SchemaColumnManager:
    """Adds and drops ``q_`` answer columns on the check-in table"""

    def __init__(self, engine: Engine, config: Optional[Settings] = None):
        self.engine = engine
        self.config = config or default_settings
        self.table_name = validate_identifier(
            self.config.CHECKIN_TABLE, "table", self.config.MAX_IDENTIFIER_LENGTH
        )
        self.prefix = self.config.QUESTION_COLUMN_PREFIX

    def column_name_for(self, base_name: str) -> str:
        """Derive and validate the physical column name for a base name"""
        if not base_name:
            raise InvalidIdentifierError("Base name is empty")
        return validate_identifier(
            f"{self.prefix}{base_name}", "column", self.config.MAX_IDENTIFIER_LENGTH
        )

    def is_answer_column(self, column_name) -> bool:
        """True for a lowercase ``<prefix>[a-z0-9_]+`` name within the identifier length limit"""
        if not isinstance(column_name, str) or not column_name.startswith(self.prefix):
            return False
        if len(column_name) > self.config.MAX_IDENTIFIER_LENGTH:
            return False
        return _ANSWER_SUFFIX_RE.fullmatch(column_name[len(self.prefix):]) is not None

    def column_exists(self, column_name: str) -> bool:
        # A fresh inspector each time; Inspector caches reflected columns
        inspector = inspect(self.engine)
        return any(col["name"] == column_name for col in inspector.get_columns(self.table_name))

    def list_question_columns(self) -> List[str]:
        """Return every prefixed answer column currently on the table"""
        try:
            inspector = inspect(self.engine)
            return [
                col["name"] for col in inspector.get_columns(self.table_name)
                if col["name"].startswith(self.prefix)
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error listing question columns on '{self.table_name}': {str(e)}")
            return []

    def _quote(self, name: str) -> str:
        return self.engine.dialect.identifier_preparer.quote(name)

    def _answer_column_definition(self, column_name: str) -> str:
        quoted = self._quote(column_name)
        values = ", ".join(f"'{value}'" for value in ANSWER_VALUES)
        if self.engine.dialect.name in ("mysql", "mariadb"):
            return f"{quoted} ENUM({values}) NULL DEFAULT NULL"
        return f"{quoted} VARCHAR(3) NULL DEFAULT NULL CHECK ({quoted} IN ({values}))"

    def ensure_column(self, base_name: str) -> bool:
        """
        Make sure the answer column for ``base_name`` exists.

        Returns True when the column was created or was already there. A
        concurrent caller may add the column between the existence check and
        the ALTER; the resulting duplicate-column error counts as success.
        """
        try:
            column_name = self.column_name_for(base_name)
        except InvalidIdentifierError as e:
            logger.warning(f"Refusing to create question column: {str(e)}")
            return False

        try:
            if self.column_exists(column_name):
                logger.info(f"Column '{column_name}' already exists in '{self.table_name}'. No action needed.")
                return True

            logger.info(f"Column '{column_name}' does not exist in '{self.table_name}'. Attempting to add.")
            ddl = (
                f"ALTER TABLE {self._quote(self.table_name)} "
                f"ADD COLUMN {self._answer_column_definition(column_name)}"
            )
            with self.engine.begin() as conn:
                conn.execute(text(ddl))

        except SQLAlchemyError as e:
            # Lost a race with another request adding the same column
            try:
                if self.column_exists(column_name):
                    logger.warning(f"Column '{column_name}' was created concurrently in '{self.table_name}'")
                    return True
            except SQLAlchemyError as check_error:
                logger.error(f"Error re-checking column '{column_name}': {str(check_error)}")

            logger.error(f"Error checking/creating column '{column_name}' in '{self.table_name}': {str(e)}")
            return False

        logger.info(f"Successfully added column '{column_name}' to '{self.table_name}' table.")
        log_schema_change("ADD COLUMN", self.table_name, column_name, self.config)
        return True

    def drop_column_if_unused(self, base_name: str) -> bool:
        """
        Drop the answer column for ``base_name`` if it exists.

        Returns True when the column was dropped or never existed. Stored
        answers are NOT checked first; dropping the column discards them.
        """
        try:
            column_name = self.column_name_for(base_name)
        except InvalidIdentifierError as e:
            logger.warning(f"Refusing to drop question column: {str(e)}")
            return False

        try:
            if not self.column_exists(column_name):
                logger.info(f"Column '{column_name}' does not exist in '{self.table_name}'. No deletion needed.")
                return True

            logger.info(f"Column '{column_name}' exists. Attempting deletion.")
            ddl = f"ALTER TABLE {self._quote(self.table_name)} DROP COLUMN {self._quote(column_name)}"
            with self.engine.begin() as conn:
                conn.execute(text(ddl))

        except SQLAlchemyError as e:
            logger.error(f"Error dropping column '{column_name}' from '{self.table_name}': {str(e)}")
            return False

        logger.info(f"Successfully dropped column '{column_name}' from '{self.table_name}'.")
        log_schema_change("DROP COLUMN", self.table_name, column_name, self.config)
        return True
