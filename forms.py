"""
Portfolio create/edit form: username normalization, required-field
validation and the full-replace save.

A save upserts the portfolio row, then replaces all four child
collections. If any part of the child replacement fails, the collections
touched so far are restored from a snapshot taken before the deletes, so
the children end up either fully replaced or as they were. The portfolio
row itself is not rolled back.
"""

import asyncio
import datetime
import logging
import re
from typing import Any, Dict, List, Optional

from composer import CHILD_ORDER, PortfolioComposer
from datastore import DataStore
from errors import DataStoreError, FormValidationError, NotFoundError, SaveFailed
from schemas import PortfolioFields, PortfolioSubmission, ProfileRow

logger = logging.getLogger(__name__)

_NOT_USERNAME = re.compile(r"[^a-z0-9]")

CHILD_TABLES = tuple(CHILD_ORDER)

REQUIRED_FIELDS = {
    "education": ("institution", "degree", "field"),
    "experience": ("company", "position"),
    "projects": ("title",),
    "skills": ("name",),
}


def normalize_username(value: str) -> str:
    """Lowercase, then drop everything outside ``[a-z0-9]``."""
    return _NOT_USERNAME.sub("", (value or "").lower())


def validate(submission: PortfolioSubmission) -> None:
    missing = []
    if not submission.portfolio.username:
        missing.append("username")
    for table, fields in REQUIRED_FIELDS.items():
        for index, row in enumerate(getattr(submission, table), start=1):
            for name in fields:
                if not str(getattr(row, name) or "").strip():
                    missing.append(f"{table} #{index} {name}")
    if missing:
        raise FormValidationError(missing)


def _child_rows(submission: PortfolioSubmission, portfolio_id: str) -> Dict[str, List[Dict[str, Any]]]:
    return {
        table: [{**row.model_dump(), "portfolio_id": portfolio_id} for row in getattr(submission, table)]
        for table in CHILD_TABLES
    }


class PortfolioForm:
    def __init__(self, datastore: DataStore, profile: ProfileRow, is_edit: bool = False):
        self.datastore = datastore
        self.profile = profile
        self.is_edit = is_edit

    async def load(self) -> Optional[PortfolioSubmission]:
        """Prefill for edit mode. None means there is nothing to edit yet."""
        model = await PortfolioComposer(self.datastore).load_for_owner(self.profile.id)
        if model is None:
            return None
        return PortfolioSubmission.model_validate(model.as_dict())

    async def save(self, submission: PortfolioSubmission) -> Dict[str, Any]:
        submission.portfolio.username = normalize_username(submission.portfolio.username)

        try:
            existing = await self.datastore.select_one("portfolios", {"user_id": self.profile.id})
        except DataStoreError as e:
            raise SaveFailed(e.message) from e

        if existing is not None and not self.is_edit:
            raise SaveFailed("You already have a portfolio. Edit it from your dashboard.")
        if existing is None and self.is_edit:
            raise NotFoundError("No portfolio to edit. Create one first.")
        if existing is not None:
            # Username is fixed once the portfolio exists.
            submission.portfolio.username = existing["username"]

        validate(submission)

        try:
            portfolio = await self._upsert(existing, submission.portfolio)
        except DataStoreError as e:
            raise SaveFailed(e.message) from e

        await self._replace_children(portfolio["id"], _child_rows(submission, portfolio["id"]))
        logger.info("Saved portfolio %s for user %s", portfolio["username"], self.profile.id)
        return portfolio

    async def _upsert(self, existing: Optional[Dict[str, Any]], fields: PortfolioFields) -> Dict[str, Any]:
        data = fields.model_dump()
        if existing is not None:
            data.pop("username")
            data["updated_at"] = datetime.datetime.utcnow()
            return await self.datastore.update("portfolios", existing["id"], data)
        rows = await self.datastore.insert("portfolios", [{**data, "user_id": self.profile.id}])
        return rows[0]

    async def _replace_children(self, portfolio_id: str, rows: Dict[str, List[Dict[str, Any]]]) -> None:
        by_portfolio = {"portfolio_id": portfolio_id}
        touched: List[str] = []
        try:
            snapshots = await asyncio.gather(
                *(self.datastore.select(table, by_portfolio) for table in CHILD_TABLES)
            )
            snapshot = dict(zip(CHILD_TABLES, snapshots))

            for table in CHILD_TABLES:
                touched.append(table)
                await self.datastore.delete(table, by_portfolio)

            pending = [table for table in CHILD_TABLES if rows[table]]
            results = await asyncio.gather(
                *(self.datastore.insert(table, rows[table]) for table in pending),
                return_exceptions=True,
            )
        except DataStoreError as e:
            if touched:
                await self._restore(portfolio_id, snapshot, touched)
            raise SaveFailed(e.message) from e

        errors = [result for result in results if isinstance(result, BaseException)]
        if not errors:
            return
        await self._restore(portfolio_id, snapshot, list(CHILD_TABLES))
        for error in errors:
            if not isinstance(error, DataStoreError):
                raise error
        raise SaveFailed(errors[0].message) from errors[0]

    async def _restore(self, portfolio_id: str, snapshot: Dict[str, List[Dict[str, Any]]], tables: List[str]) -> None:
        """Put back the rows that existed before the replace."""
        for table in tables:
            try:
                await self.datastore.delete(table, {"portfolio_id": portfolio_id})
                if snapshot[table]:
                    await self.datastore.insert(table, snapshot[table])
                logger.warning("Restored %d %s rows for portfolio %s", len(snapshot[table]), table, portfolio_id)
            except DataStoreError as e:
                logger.error("Could not restore %s for portfolio %s: %s", table, portfolio_id, e.message)

