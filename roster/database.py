"""SQLite-backed persistence for users and companies."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from .errors import ConflictError, NotFoundError
from .models import Company, Page, PageRequest, User


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _serialize_decimal(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _parse_decimal(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(value)


def _unique_ids(ids: Iterable[int]) -> List[int]:
    return sorted({int(item) for item in ids})


class _SQLiteStore:
    """Connection handling shared by the per-service stores."""

    _table: str = ""
    _sort_columns: Dict[str, str] = {}

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def exists(self, entity_id: int) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT 1 FROM {self._table} WHERE id = ?",
                (entity_id,),
            ).fetchone()
        return row is not None

    def count(self) -> int:
        with self._transaction() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM {self._table}").fetchone()
        return int(row["total"])

    def _order_clause(self, request: PageRequest) -> str:
        column = self._sort_columns.get(request.sort)
        if column is None:
            allowed = ", ".join(sorted(self._sort_columns))
            raise ValueError(f"Unsupported sort field {request.sort!r}; expected one of: {allowed}")
        direction = "DESC" if request.descending else "ASC"
        if column == "id":
            return f"ORDER BY id {direction}"
        return f"ORDER BY {column} {direction}, id ASC"


class UserStore(_SQLiteStore):
    """Persistence for user records."""

    _table = "users"
    _sort_columns = {
        "id": "id",
        "first_name": "first_name",
        "last_name": "last_name",
        "phone_number": "phone_number",
        "company_id": "company_id",
    }

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._transaction() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    phone_number TEXT UNIQUE,
                    company_id INTEGER
                );

                CREATE INDEX IF NOT EXISTS idx_users_company_id ON users(company_id);
                """
            )

    def get(self, user_id: int) -> User:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            raise NotFoundError("user", user_id)
        return self._row_to_user(row)

    def get_batch(self, user_ids: Iterable[int]) -> List[User]:
        """Return the users that exist among ``user_ids``; missing ids are skipped."""

        wanted = _unique_ids(user_ids)
        if not wanted:
            return []
        placeholders = ", ".join("?" for _ in wanted)
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT * FROM users WHERE id IN ({placeholders}) ORDER BY id",
                wanted,
            ).fetchall()
        return [self._row_to_user(row) for row in rows]

    def get_page(self, request: PageRequest) -> Page[User]:
        order = self._order_clause(request)
        with self._transaction() as conn:
            total = int(conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()["total"])
            rows = conn.execute(
                f"SELECT * FROM users {order} LIMIT ? OFFSET ?",
                (request.size, request.offset),
            ).fetchall()
        return Page(items=[self._row_to_user(row) for row in rows], request=request, total_elements=total)

    def save(self, user: User) -> User:
        """Insert a new user or overwrite an existing one and return the stored record."""

        values = (user.first_name, user.last_name, user.phone_number, user.company_id)
        with self._transaction() as conn:
            try:
                if user.id is None:
                    cursor = conn.execute(
                        """
                        INSERT INTO users (first_name, last_name, phone_number, company_id)
                        VALUES (?, ?, ?, ?)
                        """,
                        values,
                    )
                    user_id = int(cursor.lastrowid)
                else:
                    cursor = conn.execute(
                        """
                        UPDATE users
                           SET first_name = ?, last_name = ?, phone_number = ?, company_id = ?
                         WHERE id = ?
                        """,
                        (*values, user.id),
                    )
                    if cursor.rowcount == 0:
                        raise NotFoundError("user", user.id)
                    user_id = user.id
            except sqlite3.IntegrityError as exc:
                raise ConflictError("A user with that phone number already exists") from exc

        return User(
            id=user_id,
            first_name=user.first_name,
            last_name=user.last_name,
            phone_number=user.phone_number,
            company_id=user.company_id,
        )

    def delete(self, user_id: int) -> None:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("user", user_id)

    def _row_to_user(self, row: sqlite3.Row) -> User:
        company_id = row["company_id"]
        return User(
            id=int(row["id"]),
            first_name=str(row["first_name"]),
            last_name=str(row["last_name"]),
            phone_number=row["phone_number"],
            company_id=int(company_id) if company_id is not None else None,
        )


class CompanyStore(_SQLiteStore):
    """Persistence for companies and their ordered employee id lists."""

    _table = "companies"
    _sort_columns = {
        "id": "id",
        "company_name": "company_name",
        "budget": "CAST(budget AS REAL)",
    }

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._transaction() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS companies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    company_name TEXT NOT NULL,
                    budget TEXT
                );

                CREATE TABLE IF NOT EXISTS company_employees (
                    company_id INTEGER NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    employee_id INTEGER NOT NULL,
                    PRIMARY KEY (company_id, employee_id)
                );

                CREATE INDEX IF NOT EXISTS idx_company_employees_company_id
                    ON company_employees(company_id, position);
                """
            )

    def get(self, company_id: int) -> Company:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM companies WHERE id = ?", (company_id,)).fetchone()
            if row is None:
                raise NotFoundError("company", company_id)
            employees = self._load_employee_ids(conn, [company_id])
        return self._row_to_company(row, employees.get(company_id, []))

    def get_batch(self, company_ids: Iterable[int]) -> List[Company]:
        """Return the companies that exist among ``company_ids``; missing ids are skipped."""

        wanted = _unique_ids(company_ids)
        if not wanted:
            return []
        placeholders = ", ".join("?" for _ in wanted)
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT * FROM companies WHERE id IN ({placeholders}) ORDER BY id",
                wanted,
            ).fetchall()
            employees = self._load_employee_ids(conn, [int(row["id"]) for row in rows])
        return [self._row_to_company(row, employees.get(int(row["id"]), [])) for row in rows]

    def get_page(self, request: PageRequest) -> Page[Company]:
        order = self._order_clause(request)
        with self._transaction() as conn:
            total = int(conn.execute("SELECT COUNT(*) AS total FROM companies").fetchone()["total"])
            rows = conn.execute(
                f"SELECT * FROM companies {order} LIMIT ? OFFSET ?",
                (request.size, request.offset),
            ).fetchall()
            employees = self._load_employee_ids(conn, [int(row["id"]) for row in rows])
        items = [self._row_to_company(row, employees.get(int(row["id"]), [])) for row in rows]
        return Page(items=items, request=request, total_elements=total)

    def save(self, company: Company) -> Company:
        """Insert or overwrite a company, rewriting its employee list in the same transaction."""

        employee_ids: List[int] = []
        for employee_id in company.employee_ids:
            if employee_id not in employee_ids:
                employee_ids.append(employee_id)

        with self._transaction() as conn:
            if company.id is None:
                cursor = conn.execute(
                    "INSERT INTO companies (company_name, budget) VALUES (?, ?)",
                    (company.company_name, _serialize_decimal(company.budget)),
                )
                company_id = int(cursor.lastrowid)
            else:
                cursor = conn.execute(
                    "UPDATE companies SET company_name = ?, budget = ? WHERE id = ?",
                    (company.company_name, _serialize_decimal(company.budget), company.id),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError("company", company.id)
                company_id = company.id
                conn.execute("DELETE FROM company_employees WHERE company_id = ?", (company_id,))

            conn.executemany(
                "INSERT INTO company_employees (company_id, position, employee_id) VALUES (?, ?, ?)",
                [(company_id, position, employee_id) for position, employee_id in enumerate(employee_ids)],
            )

        return Company(
            id=company_id,
            company_name=company.company_name,
            budget=company.budget,
            employee_ids=employee_ids,
        )

    def delete(self, company_id: int) -> None:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM companies WHERE id = ?", (company_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("company", company_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _load_employee_ids(self, conn: sqlite3.Connection, company_ids: List[int]) -> Dict[int, List[int]]:
        if not company_ids:
            return {}
        placeholders = ", ".join("?" for _ in company_ids)
        rows = conn.execute(
            f"""
            SELECT company_id, employee_id FROM company_employees
             WHERE company_id IN ({placeholders})
             ORDER BY company_id, position
            """,
            company_ids,
        ).fetchall()
        employees: Dict[int, List[int]] = {}
        for row in rows:
            employees.setdefault(int(row["company_id"]), []).append(int(row["employee_id"]))
        return employees

    def _row_to_company(self, row: sqlite3.Row, employee_ids: List[int]) -> Company:
        return Company(
            id=int(row["id"]),
            company_name=str(row["company_name"]),
            budget=_parse_decimal(row["budget"]),
            employee_ids=list(employee_ids),
        )


__all__ = ["CompanyStore", "UserStore"]
