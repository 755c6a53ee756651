from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union


class Role(Enum):
    ADMIN = "ADMIN"
    USER = "USER"

    @classmethod
    def parse(cls, value: Union["Role", str, None]) -> Optional["Role"]:
        """Return the matching Role, or None when ``value`` names no role."""
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                return None
        return None


@dataclass
class Book:
    isbn: str
    title: str
    author: str
    category_id: Optional[str] = None
    copies_total: int = 0
    copies_available: int = 0
    book_id: str = ""

    @property
    def copies_on_loan(self) -> int:
        return self.copies_total - self.copies_available

    @property
    def is_available(self) -> bool:
        return self.copies_available > 0

    def counts_are_consistent(self) -> bool:
        return 0 <= self.copies_available <= self.copies_total


@dataclass
class User:
    login: str
    name: str = ""
    email: str = ""
    role: Role = Role.USER
    active: bool = True
    user_id: str = ""
    # only ever a one-way hash
    password_hash: Optional[str] = field(default=None, repr=False, compare=False)

    def without_credentials(self) -> "User":
        return replace(self, password_hash=None)
