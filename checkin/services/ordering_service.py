# checkin/services/ordering_service.py
"""
Order index maintenance for manually sorted lists (site questions).

Each allowed scope is a ``(table, order column, group column)`` triple from
``settings.REORDERABLE_SCOPES``. Rows are identified by an ``id`` column.

``move`` swaps an item with its nearest neighbour in the group; ``renumber``
rewrites the group's order values to ``0..N-1`` keeping their relative order.
Both run in a single transaction and report failure as ``False`` after the
transaction has been rolled back.
"""
import logging
from typing import NamedTuple, Optional, Any

from sqlalchemy import select, update, func, table, column
from sqlalchemy.engine import Engine, Connection
from sqlalchemy.exc import SQLAlchemyError

from checkin.core.config import settings as default_settings, Settings
from checkin.core.exceptions import InvalidIdentifierError, ItemNotFoundError
from checkin.utils.naming import validate_identifier

logger = logging.getLogger(__name__)

DIRECTIONS = ("up", "down")


class OrderScope(NamedTuple):
    table: str
    order_column: str
    group_column: Optional[str] = None


class OrderingEngine:
    """Moves and renumbers rows inside an allow-listed ordering scope"""

    def __init__(self, engine: Engine, config: Optional[Settings] = None):
        self.engine = engine
        self.config = config or default_settings
        self.allowed_scopes = {OrderScope(*scope) for scope in self.config.REORDERABLE_SCOPES}
        self.lock_group = self.config.REORDER_LOCK_GROUP

    def is_allowed(self, table_name: str, order_column: str, group_column: Optional[str] = None) -> bool:
        return OrderScope(table_name, order_column, group_column) in self.allowed_scopes

    def _resolve_scope(self, table_name, order_column, group_column, group_value):
        """Validate the caller's scope and build a lightweight table construct"""
        max_length = self.config.MAX_IDENTIFIER_LENGTH
        validate_identifier(table_name, "table", max_length)
        validate_identifier(order_column, "order column", max_length)
        if group_column is not None:
            validate_identifier(group_column, "group column", max_length)
            if group_value is None:
                raise InvalidIdentifierError(f"Missing group value for group column '{group_column}'")

        if not self.is_allowed(table_name, order_column, group_column):
            raise InvalidIdentifierError(
                f"Reordering is not allowed for ({table_name}, {order_column}, {group_column})"
            )

        columns = [column("id"), column(order_column)]
        if group_column is not None:
            columns.append(column(group_column))
        return table(table_name, *columns)

    @staticmethod
    def _in_group(target, group_column, group_value):
        if group_column is None:
            return []
        return [target.c[group_column] == group_value]

    def _lock(self, conn: Connection, target, group_column, group_value) -> None:
        """Row-lock the whole group for the rest of the transaction"""
        if not self.lock_group:
            return
        stmt = select(target.c.id).where(*self._in_group(target, group_column, group_value)).with_for_update()
        conn.execute(stmt).fetchall()

    def move(
            self,
            table_name: str,
            order_column: str,
            group_column: Optional[str],
            group_value: Any,
            item_id: Any,
            direction: str
    ) -> bool:
        """
        Swap ``item_id`` with its closest neighbour above ("up") or below ("down").

        An item already at the edge of its group is left alone and the call
        still succeeds. Pass None for both group arguments on ungrouped tables.
        """
        logger.debug(
            f"move() - table: {table_name}, order_col: {order_column}, group_col: {group_column}, "
            f"group_val: {group_value}, item_id: {item_id}, direction: {direction}"
        )
        try:
            if direction not in DIRECTIONS:
                raise InvalidIdentifierError(f"Invalid direction {direction!r}")
            if item_id is None:
                raise InvalidIdentifierError("Missing item id for move operation")
            target = self._resolve_scope(table_name, order_column, group_column, group_value)
        except InvalidIdentifierError as e:
            logger.warning(f"Rejected move on '{table_name}': {str(e)}")
            return False

        order_col = target.c[order_column]
        in_group = self._in_group(target, group_column, group_value)

        try:
            with self.engine.begin() as conn:
                self._lock(conn, target, group_column, group_value)

                current = conn.execute(
                    select(target.c.id, order_col).where(target.c.id == item_id, *in_group)
                ).first()
                if current is None:
                    raise ItemNotFoundError(f"Item id '{item_id}' not found")
                current_order = current[1]
                if current_order is None:
                    raise ItemNotFoundError(f"Item id '{item_id}' has no {order_column} value to move from")

                if direction == "up":
                    adjacent_stmt = (
                        select(target.c.id, order_col)
                        .where(order_col < current_order, *in_group)
                        .order_by(order_col.desc(), target.c.id.desc())
                    )
                else:
                    adjacent_stmt = (
                        select(target.c.id, order_col)
                        .where(order_col > current_order, *in_group)
                        .order_by(order_col.asc(), target.c.id.asc())
                    )
                adjacent = conn.execute(adjacent_stmt.limit(1)).first()

                if adjacent is None:
                    logger.info(f"Item {item_id} is already at the {'top' if direction == 'up' else 'bottom'} of its group")
                    return True

                adjacent_id, adjacent_order = adjacent
                conn.execute(
                    update(target).where(target.c.id == item_id).values({order_column: adjacent_order})
                )
                conn.execute(
                    update(target).where(target.c.id == adjacent_id).values({order_column: current_order})
                )

            logger.info(f"Reorder successful: swapped item {item_id} with {adjacent_id} in '{table_name}'")
            return True

        except ItemNotFoundError as e:
            logger.warning(f"Move failed for table '{table_name}', group '{group_value}': {str(e)}")
            return False
        except SQLAlchemyError as e:
            logger.error(
                f"Error in move for table '{table_name}', group '{group_value}', item '{item_id}': {str(e)}"
            )
            return False

    def renumber(
            self,
            table_name: str,
            order_column: str,
            group_column: Optional[str] = None,
            group_value: Any = None
    ) -> bool:
        """Rewrite the group's order values to 0..N-1, preserving relative order"""
        try:
            target = self._resolve_scope(table_name, order_column, group_column, group_value)
        except InvalidIdentifierError as e:
            logger.warning(f"Rejected renumber on '{table_name}': {str(e)}")
            return False

        order_col = target.c[order_column]
        in_group = self._in_group(target, group_column, group_value)

        try:
            with self.engine.begin() as conn:
                self._lock(conn, target, group_column, group_value)

                item_ids = conn.execute(
                    select(target.c.id).where(*in_group).order_by(order_col.asc(), target.c.id.asc())
                ).scalars().all()

                for new_order, row_id in enumerate(item_ids):
                    conn.execute(
                        update(target).where(target.c.id == row_id).values({order_column: new_order})
                    )

            logger.info(
                f"Renumbering complete for '{table_name}' group {group_column} = {group_value}. "
                f"{len(item_ids)} items renumbered."
            )
            return True

        except SQLAlchemyError as e:
            logger.error(f"Error renumbering table '{table_name}', group '{group_value}': {str(e)}")
            return False

    def next_position(
            self,
            table_name: str,
            order_column: str,
            group_column: Optional[str] = None,
            group_value: Any = None
    ) -> Optional[int]:
        """Order value for appending a new item to the group, None on failure"""
        try:
            target = self._resolve_scope(table_name, order_column, group_column, group_value)
        except InvalidIdentifierError as e:
            logger.warning(f"Rejected next_position on '{table_name}': {str(e)}")
            return None

        order_col = target.c[order_column]
        try:
            with self.engine.connect() as conn:
                max_order = conn.execute(
                    select(func.max(order_col)).where(*self._in_group(target, group_column, group_value))
                ).scalar()
        except SQLAlchemyError as e:
            logger.error(f"Error reading max order for '{table_name}', group '{group_value}': {str(e)}")
            return None

        return 0 if max_order is None else max_order + 1
