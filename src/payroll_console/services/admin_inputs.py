"""Admin input collection for custom salary fields.

AdminInputStore holds what the operator typed. AdminInputNegotiator decides
which fields need input, validates the grid and expands it into the dense map
sent with a calculation request.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

from payroll_console.types import (
    AdminInputField,
    AdminInputs,
    CompanyDetails,
    Employee,
    FieldPurpose,
)

# Salary template sections scanned for admin input fields, in display order
TEMPLATE_SECTIONS = ("mandatoryFields", "optionalFields", "customFields")

ZERO = Decimal("0")


class AdminInputStore:
    """Sparse per-employee, per-field values entered by the operator."""

    def __init__(self) -> None:
        self._values: AdminInputs = {}

    def set(self, employee_id: str, key: str, value: Any) -> None:
        """Set a cell. None or a blank string clears it.

        Raises:
            ValueError: If the value is not a number.
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            self.clear_cell(employee_id, key)
            return
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"{value!r} is not a number") from e
        self._values.setdefault(employee_id, {})[key] = amount

    def clear_cell(self, employee_id: str, key: str) -> None:
        values = self._values.get(employee_id)
        if values is None:
            return
        values.pop(key, None)
        if not values:
            del self._values[employee_id]

    def get(self, employee_id: str, key: str) -> Decimal | None:
        return self._values.get(employee_id, {}).get(key)

    def for_employee(self, employee_id: str) -> dict[str, Decimal]:
        return dict(self._values.get(employee_id, {}))

    def snapshot(self) -> AdminInputs:
        """Deep copy of the current values."""
        return copy.deepcopy(self._values)

    def clear(self) -> None:
        self._values = {}

    def __len__(self) -> int:
        return sum(len(v) for v in self._values.values())


class AdminInputNegotiator:
    """Works out and checks the operator input needed before calculation."""

    @staticmethod
    def fields_requiring(company: CompanyDetails | None) -> list[AdminInputField]:
        """Fields of the company's salary template flagged requiresAdminInput."""
        template = company.salary_template if company else None
        if not template:
            return []

        fields: list[AdminInputField] = []
        seen: set[str] = set()
        for section in TEMPLATE_SECTIONS:
            for raw in template.get(section) or ():
                if not raw.get("requiresAdminInput"):
                    continue
                key = raw.get("key")
                if not key or key in seen:
                    continue
                seen.add(key)
                default = raw.get("defaultValue")
                fields.append(
                    AdminInputField(
                        key=key,
                        label=raw.get("label") or key,
                        purpose=FieldPurpose.parse(raw.get("purpose")),
                        field_type=raw.get("type") or "number",
                        description=raw.get("description"),
                        default_value=None if default in (None, "") else str(default),
                    )
                )
        return fields

    @staticmethod
    def active_employees(employees: Iterable[Employee]) -> list[Employee]:
        """Only active employees take part in input and calculation."""
        return [e for e in employees if e.is_active]

    @staticmethod
    def validate(
        active_employee_ids: Sequence[str],
        fields: Sequence[AdminInputField],
        inputs: AdminInputs,
    ) -> list[str]:
        """Return validation errors (empty if valid).

        Blank cells are treated as zero and are not errors.
        """
        errors: list[str] = []
        for employee_id in active_employee_ids:
            employee_inputs = inputs.get(employee_id, {})
            for f in fields:
                value = employee_inputs.get(f.key)
                if value is None:
                    continue
                if not value.is_finite():
                    errors.append(f"Employee {employee_id}: {f.label} must be a number")
                elif value < 0:
                    errors.append(f"Employee {employee_id}: {f.label} cannot be negative")
        return errors

    @staticmethod
    def canonicalize(
        active_employee_ids: Sequence[str],
        fields: Sequence[AdminInputField],
        inputs: AdminInputs,
    ) -> AdminInputs:
        """Expand sparse inputs so every active employee has every field.

        Gaps are filled with 0. Values for inactive employees or unknown
        fields are dropped.
        """
        return {
            employee_id: {
                f.key: inputs.get(employee_id, {}).get(f.key, ZERO) for f in fields
            }
            for employee_id in active_employee_ids
        }
