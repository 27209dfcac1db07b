from __future__ import annotations

from datetime import date


class Reader:
    """A registered library member."""

    def __init__(self, id: str, name: str, dept: str = "", phone: str = "",
                 register_date: date | None = None, is_valid: bool = True) -> None:
        self.id = id.strip()
        self.name = name.strip()
        self.dept = dept.strip()
        self.phone = phone.strip()
        self.register_date = register_date or date.today()
        self.is_valid = is_valid

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} ({self.id})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Reader):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def matches(self, keyword: str) -> bool:
        needle = keyword.lower()
        return any(needle in field.lower() for field in (self.id, self.name, self.dept, self.phone))

    def assign(self, other: "Reader") -> None:
        """Take over every field of ``other`` while keeping this object."""
        self.id = other.id
        self.name = other.name
        self.dept = other.dept
        self.phone = other.phone
        self.register_date = other.register_date
        self.is_valid = other.is_valid

    def copy(self) -> "Reader":
        return Reader.from_dict(self.to_dict())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "dept": self.dept,
            "phone": self.phone,
            "register_date": self.register_date.isoformat(),
            "is_valid": self.is_valid,
        }

    @staticmethod
    def from_dict(data: dict) -> "Reader":
        registered = data.get("register_date")
        if isinstance(registered, str):
            registered = date.fromisoformat(registered)
        return Reader(
            id=data["id"],
            name=data["name"],
            dept=data.get("dept", ""),
            phone=data.get("phone", ""),
            register_date=registered,
            is_valid=data.get("is_valid", True),
        )
