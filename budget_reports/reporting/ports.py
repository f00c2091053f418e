"""
Collaborator interfaces consumed by the report engine.

The SQLAlchemy implementations live in ``budget_reports.database.repositories``;
tests use in-memory fakes.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol

from .models import CategoryAllocation, OrderLine, RefundLine
from .periods import LedgerQuery


class OrderLedger(Protocol):
    """Order line and refund line source"""

    async def fetch_order_lines(self, query: LedgerQuery) -> List[OrderLine]:
        ...

    async def fetch_refund_lines(self, query: LedgerQuery) -> List[RefundLine]:
        """Refund lines whose parent order line falls within ``query``"""
        ...


class BudgetDirectory(Protocol):
    """Budget configuration and census source"""

    async def fetch_category_allocations(self, location_id: str) -> List[CategoryAllocation]:
        """Active category allocations for the location, in configuration order"""
        ...

    async def fetch_census(self, location_id: str, budget_month: str) -> Optional[Decimal]:
        ...


class CategoryDirectory(Protocol):
    """Product to category label lookup"""

    async def categories_for(self, product_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        ...
