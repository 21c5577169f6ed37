from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Viewer grant model.

A grant is one of three variants:

- ADMIN / PRESIDENT: unrestricted, sees every department and every region
- MANAGER: restricted to ``department_patterns`` for evaluations and to one
  sales region tab, optionally narrowed further by ``department_key``

Grants are built once from configuration (see ``GrantTable``) and never
mutated.
"""

__all__ = [
    "ALL_DEPARTMENTS",
    "ALL_REGIONS",
    "Grant",
    "Role",
]

ALL_DEPARTMENTS = "全社"  # 全部署を意味する特別値
ALL_REGIONS = "all"


class Role(Enum):
    ADMIN = "admin"
    PRESIDENT = "president"
    MANAGER = "manager"


@dataclass(frozen=True)
class Grant:
    role: Role
    department_patterns: tuple[str, ...] = (ALL_DEPARTMENTS,)
    sales_tab: str = ALL_REGIONS  # region key (tokyo/osaka/...) or "all"
    department_key: str | None = None  # 売上画面の部門絞り込み (部分一致)

    @classmethod
    def admin(cls) -> Grant:
        return cls(role=Role.ADMIN)

    @classmethod
    def president(cls) -> Grant:
        return cls(role=Role.PRESIDENT)

    @classmethod
    def manager(
        cls,
        departments: list[str] | tuple[str, ...],
        sales_tab: str,
        department_key: str | None = None,
    ) -> Grant:
        return cls(
            role=Role.MANAGER,
            department_patterns=tuple(departments),
            sales_tab=sales_tab,
            department_key=department_key or None,
        )

    @property
    def sees_all_departments(self) -> bool:
        return self.role in (Role.ADMIN, Role.PRESIDENT) or ALL_DEPARTMENTS in self.department_patterns

    @property
    def sees_all_regions(self) -> bool:
        return self.role in (Role.ADMIN, Role.PRESIDENT) or self.sales_tab == ALL_REGIONS
