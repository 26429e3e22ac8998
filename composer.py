"""Loads a portfolio and its child collections into one read model."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from datastore import DataStore, Order
from errors import DataStoreError, LoadFailed, NotFoundError

logger = logging.getLogger(__name__)

OWNER_EMBED = {"profiles": ("full_name", "email")}

# Sort order per child collection. Dates are free text and compare lexically.
CHILD_ORDER = {
    "education": [Order("start_date", descending=True)],
    "experience": [Order("start_date", descending=True)],
    "projects": [Order("created_at", descending=True)],
    "skills": [Order("category")],
}


@dataclass
class PortfolioReadModel:
    portfolio: Dict[str, Any]
    education: List[Dict[str, Any]] = field(default_factory=list)
    experience: List[Dict[str, Any]] = field(default_factory=list)
    projects: List[Dict[str, Any]] = field(default_factory=list)
    skills: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def theme(self) -> str:
        return self.portfolio.get("theme") or "modern"

    @property
    def owner(self) -> Dict[str, Any]:
        return self.portfolio.get("profiles") or {}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "portfolio": self.portfolio,
            "education": self.education,
            "experience": self.experience,
            "projects": self.projects,
            "skills": self.skills,
        }


class PortfolioComposer:
    def __init__(self, datastore: DataStore):
        self.datastore = datastore

    async def _fetch_children(self, portfolio_id: str) -> Dict[str, List[Dict[str, Any]]]:
        tables = list(CHILD_ORDER)
        results = await asyncio.gather(
            *(
                self.datastore.select(table, {"portfolio_id": portfolio_id}, order=CHILD_ORDER[table])
                for table in tables
            ),
            return_exceptions=True,
        )
        children = {}
        for table, result in zip(tables, results):
            if isinstance(result, DataStoreError):
                logger.error("Error loading %s for portfolio %s: %s", table, portfolio_id, result.message)
                children[table] = []
            elif isinstance(result, BaseException):
                raise result
            else:
                children[table] = result
        return children

    async def _compose(self, portfolio: Dict[str, Any]) -> PortfolioReadModel:
        children = await self._fetch_children(portfolio["id"])
        return PortfolioReadModel(portfolio=portfolio, **children)

    async def find_owned(self, user_id: str) -> Optional[Dict[str, Any]]:
        """The owner's portfolio row without children, or None."""
        try:
            return await self.datastore.select_one("portfolios", {"user_id": user_id})
        except DataStoreError as e:
            logger.error("Error loading portfolio for user %s: %s", user_id, e.message)
            raise LoadFailed() from e

    async def load_for_owner(self, user_id: str) -> Optional[PortfolioReadModel]:
        """None means the identity has no portfolio yet."""
        portfolio = await self.find_owned(user_id)
        if portfolio is None:
            return None
        return await self._compose(portfolio)

    async def load_public(self, username: str) -> PortfolioReadModel:
        """
        Missing and private portfolios both raise the same NotFoundError;
        the ``is_public`` filter is the whole privacy check.
        """
        try:
            portfolio = await self.datastore.select_one(
                "portfolios", {"username": username, "is_public": True}, embed=OWNER_EMBED
            )
        except DataStoreError as e:
            logger.error("Error loading portfolio %s: %s", username, e.message)
            raise LoadFailed() from e
        if portfolio is None:
            raise NotFoundError()
        return await self._compose(portfolio)

    async def list_public(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """Public portfolios for the gallery, newest first."""
        try:
            rows = await self.datastore.select(
                "portfolios",
                {"is_public": True},
                order=[Order("created_at", descending=True)],
                embed={"profiles": ("full_name",)},
            )
        except DataStoreError as e:
            logger.error("Error loading portfolios: %s", e.message)
            raise LoadFailed("Failed to load portfolios") from e
        return filter_portfolios(rows, search)


def filter_portfolios(rows: List[Dict[str, Any]], search: Optional[str]) -> List[Dict[str, Any]]:
    if not search or not search.strip():
        return rows
    needle = search.lower()

    def haystack(row):
        owner = row.get("profiles") or {}
        return (
            owner.get("full_name") or "",
            row.get("tagline") or "",
            row.get("bio") or "",
            row.get("location") or "",
        )

    return [row for row in rows if any(needle in text.lower() for text in haystack(row))]
