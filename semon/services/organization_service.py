from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any
from uuid import uuid4

from semon.domain.models import now_utc
from semon.domain.state_machine import AssignmentStatus, can_transition_assignment
from semon.infra.store import RecordStore, Row

PROTECTED_FIELDS = frozenset({"id", "created_at", "created_by"})
CODE_SUFFIX = re.compile(r"(\d+)$")

TABLE_ENTITY_TYPES: dict[str, str] = {
    "directorates": "Directorate",
    "work_units": "WorkUnit",
    "affairs": "Affair",
    "positions": "Position",
    "position_assignments": "PositionAssignment",
}

# Direct children of each container table, as (child table, parent reference field).
CHILD_LINKS: dict[str, tuple[tuple[str, str], ...]] = {
    "directorates": (("work_units", "directorate_id"), ("positions", "directorate_id")),
    "work_units": (("affairs", "work_unit_id"), ("positions", "work_unit_id")),
    "affairs": (("positions", "affair_id"),),
    "positions": (),
}

# Every reference column checked by the integrity report, as (table, field, target table).
REFERENCE_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("work_units", "directorate_id", "directorates"),
    ("affairs", "work_unit_id", "work_units"),
    ("positions", "directorate_id", "directorates"),
    ("positions", "work_unit_id", "work_units"),
    ("positions", "affair_id", "affairs"),
    ("positions", "parent_position_id", "positions"),
    ("position_assignments", "position_id", "positions"),
)


class OrganizationError(Exception):
    pass


class NotFoundError(OrganizationError):
    pass


class ConflictError(OrganizationError):
    pass


RemovedRecord = tuple[str, Row]


def format_display(row: Row | None) -> str:
    if not row:
        return "-"
    return f"{row.get('code', '')} - {row.get('name', '')}"


def next_code(prefix: str, codes: list[Any]) -> str:
    highest = 0
    for code in codes:
        if not isinstance(code, str):
            continue
        match = CODE_SUFFIX.search(code)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}-{highest + 1:03d}"


def _is_active(row: Row) -> bool:
    return bool(row.get("is_active"))


def _sort_rows(rows: list[Row]) -> list[Row]:
    # sorted() is stable, so equal sort_order keeps insertion order.
    return sorted(rows, key=lambda row: row.get("sort_order") or 0)


def _by_id(rows: list[Row]) -> dict[str, Row]:
    return {row["id"]: row for row in rows}


class HierarchyModel(ABC):
    table = ""
    label = ""
    code_prefix = ""
    parent_field: str | None = None
    # (field, table, label) for references that must resolve when set.
    references: tuple[tuple[str, str, str], ...] = ()
    filter_fields: tuple[str, ...] = ("is_active",)

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @property
    def entity_type(self) -> str:
        return TABLE_ENTITY_TYPES[self.table]

    def _rows(self, table: str | None = None) -> list[Row]:
        return self._store.get_all(table or self.table)

    def find_by_id(self, entity_id: str) -> Row | None:
        for row in self._rows():
            if row.get("id") == entity_id:
                return row
        return None

    def get(self, entity_id: str) -> Row:
        row = self.find_by_id(entity_id)
        if row is None:
            raise NotFoundError(f"{self.label.capitalize()} not found")
        return row

    def denormalize(self, rows: list[Row]) -> list[Row]:
        return [dict(row) for row in rows]

    def get_all(self, filters: dict[str, Any] | None = None) -> list[Row]:
        active_filters = {
            key: value
            for key, value in (filters or {}).items()
            if key in self.filter_fields and value is not None
        }
        rows = self.denormalize(_sort_rows(self._rows()))
        return [
            row
            for row in rows
            if all(row.get(key) == value for key, value in active_filters.items())
        ]

    def generate_code(self) -> str:
        return next_code(self.code_prefix, [row.get("code") for row in self._rows()])

    def _check_references(self, values: Row) -> None:
        for field, table, label in self.references:
            ref_id = values.get(field)
            if ref_id is None:
                continue
            if not any(row.get("id") == ref_id for row in self._rows(table)):
                raise NotFoundError(f"{label} not found")

    def _check_code_unique(self, code: str, exclude_id: str | None = None) -> None:
        for row in self._rows():
            if row.get("code") == code and row.get("id") != exclude_id:
                raise ConflictError(f"{self.label.capitalize()} code already exists: {code}")

    def create(self, data: Row, actor_id: str | None) -> Row:
        payload = {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}
        code = payload.get("code")
        if code:
            self._check_code_unique(code)
        else:
            payload["code"] = self.generate_code()
        self._check_references(payload)

        now = now_utc()
        row: Row = {
            "description": "",
            "notes": "",
            "is_active": True,
            "sort_order": 0,
            **{key: value for key, value in payload.items() if value is not None},
            "id": str(uuid4()),
            "created_at": now,
            "created_by": actor_id,
            "updated_at": now,
            "updated_by": actor_id,
        }
        if row.get("active_from") is None:
            row["active_from"] = now
        self._store.insert(self.table, row)
        return self.get(row["id"])

    def update(self, entity_id: str, data: Row, actor_id: str | None) -> Row:
        current = self.get(entity_id)
        partial = {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}
        code = partial.get("code")
        if code and code != current.get("code"):
            self._check_code_unique(code, exclude_id=entity_id)
        self._check_references(partial)
        partial["updated_at"] = now_utc()
        partial["updated_by"] = actor_id
        self._store.update(self.table, "id", entity_id, partial)
        return self.get(entity_id)

    def blocking_reason(self, entity_id: str) -> str | None:
        return None

    def delete(self, entity_id: str) -> Row:
        row = self.get(entity_id)
        reason = self.blocking_reason(entity_id)
        if reason is not None:
            raise ConflictError(reason)
        self._store.delete(self.table, "id", entity_id)
        return row

    @abstractmethod
    def check_children(self, entity_id: str) -> dict[str, Any]:
        """Count the active rows that would block deleting ``entity_id``."""


class ContainerModel(HierarchyModel):
    """Directorate, work unit and affair: entities that own a subtree."""

    def get_alternatives(self, entity_id: str) -> list[dict[str, str]]:
        row = self.get(entity_id)
        parent_id = row.get(self.parent_field) if self.parent_field else None
        siblings = [
            item
            for item in _sort_rows(self._rows())
            if item["id"] != entity_id
            and _is_active(item)
            and (self.parent_field is None or item.get(self.parent_field) == parent_id)
        ]
        return [
            {
                "id": item["id"],
                "code": item["code"],
                "name": item["name"],
                "display": format_display(item),
            }
            for item in siblings
        ]

    def _collect_descendants(
        self,
        table: str,
        entity_id: str,
        seen: set[tuple[str, str]],
    ) -> list[tuple[str, Row]]:
        ordered: list[tuple[str, Row]] = []
        for child_table, field in CHILD_LINKS[table]:
            for child in self._rows(child_table):
                if child.get(field) != entity_id:
                    continue
                key = (child_table, child["id"])
                if key in seen:
                    continue
                seen.add(key)
                ordered.extend(self._collect_descendants(child_table, child["id"], seen))
                ordered.append((child_table, child))
        return ordered

    def cascade_delete(self, entity_id: str) -> list[RemovedRecord]:
        """Delete the entity and its whole subtree, deepest rows first.

        Returns ``(entity_type, row)`` for every removed row, the entity last.
        """
        with self._store.transaction():
            row = self.get(entity_id)
            removed = self._collect_descendants(self.table, entity_id, {(self.table, entity_id)})
            removed.append((self.table, row))
            for table, item in removed:
                self._store.delete(table, "id", item["id"])
        return [(TABLE_ENTITY_TYPES[table], item) for table, item in removed]

    def reassign_and_delete(
        self,
        entity_id: str,
        new_parent_id: str,
        actor_id: str | None,
    ) -> list[RemovedRecord]:
        """Point every direct child at ``new_parent_id``, then delete the entity.

        The replacement is not looked up: a missing target leaves the children
        with a dangling reference, reported later by ``find_dangling_references``.
        Returns ``(entity_type, row)`` for each moved child.
        """
        if new_parent_id == entity_id:
            raise ConflictError(f"Cannot reassign a {self.label} to itself")
        moved: list[RemovedRecord] = []
        with self._store.transaction():
            self.get(entity_id)
            now = now_utc()
            for child_table, field in CHILD_LINKS[self.table]:
                for child in self._rows(child_table):
                    if child.get(field) != entity_id:
                        continue
                    self._store.update(
                        child_table,
                        "id",
                        child["id"],
                        {field: new_parent_id, "updated_at": now, "updated_by": actor_id},
                    )
                    moved.append((TABLE_ENTITY_TYPES[child_table], child))
            self._store.delete(self.table, "id", entity_id)
        return moved


class DirectorateModel(ContainerModel):
    table = "directorates"
    label = "directorate"
    code_prefix = "DIR"
    references = (("director_position_id", "positions", "Director position"),)

    def denormalize(self, rows: list[Row]) -> list[Row]:
        positions = _by_id(self._rows("positions"))
        return [
            {
                **row,
                "director_position_display": format_display(
                    positions.get(row.get("director_position_id") or "")
                ),
            }
            for row in rows
        ]

    def blocking_reason(self, entity_id: str) -> str | None:
        for unit in self._rows("work_units"):
            if unit.get("directorate_id") == entity_id and _is_active(unit):
                return "Cannot delete directorate with active work units"
        return None

    def check_children(self, entity_id: str) -> dict[str, Any]:
        self.get(entity_id)
        unit_ids = {
            unit["id"]
            for unit in self._rows("work_units")
            if unit.get("directorate_id") == entity_id and _is_active(unit)
        }
        affair_ids = {
            affair["id"]
            for affair in self._rows("affairs")
            if affair.get("work_unit_id") in unit_ids and _is_active(affair)
        }
        positions = [
            position
            for position in self._rows("positions")
            if _is_active(position)
            and (
                position.get("directorate_id") == entity_id
                or position.get("work_unit_id") in unit_ids
                or position.get("affair_id") in affair_ids
            )
        ]
        total = len(unit_ids) + len(affair_ids) + len(positions)
        return {
            "has_children": total > 0,
            "work_units": len(unit_ids),
            "affairs": len(affair_ids),
            "positions": len(positions),
            "total": total,
        }


class WorkUnitModel(ContainerModel):
    table = "work_units"
    label = "work unit"
    code_prefix = "WU"
    parent_field = "directorate_id"
    references = (
        ("directorate_id", "directorates", "Directorate"),
        ("deputy_position_id", "positions", "Deputy position"),
    )
    filter_fields = ("is_active", "directorate_id")

    def denormalize(self, rows: list[Row]) -> list[Row]:
        directorates = _by_id(self._rows("directorates"))
        positions = _by_id(self._rows("positions"))
        return [
            {
                **row,
                "directorate_display": format_display(directorates.get(row.get("directorate_id") or "")),
                "deputy_position_display": format_display(
                    positions.get(row.get("deputy_position_id") or "")
                ),
            }
            for row in rows
        ]

    def blocking_reason(self, entity_id: str) -> str | None:
        for affair in self._rows("affairs"):
            if affair.get("work_unit_id") == entity_id and _is_active(affair):
                return "Cannot delete work unit with active affairs"
        return None

    def check_children(self, entity_id: str) -> dict[str, Any]:
        self.get(entity_id)
        affair_ids = {
            affair["id"]
            for affair in self._rows("affairs")
            if affair.get("work_unit_id") == entity_id and _is_active(affair)
        }
        positions = [
            position
            for position in self._rows("positions")
            if _is_active(position)
            and (position.get("work_unit_id") == entity_id or position.get("affair_id") in affair_ids)
        ]
        total = len(affair_ids) + len(positions)
        return {
            "has_children": total > 0,
            "affairs": len(affair_ids),
            "positions": len(positions),
            "total": total,
        }


class AffairModel(ContainerModel):
    table = "affairs"
    label = "affair"
    code_prefix = "AFF"
    parent_field = "work_unit_id"
    references = (
        ("work_unit_id", "work_units", "Work unit"),
        ("assistant_deputy_position_id", "positions", "Assistant deputy position"),
    )
    filter_fields = ("is_active", "work_unit_id", "directorate_id")

    def denormalize(self, rows: list[Row]) -> list[Row]:
        directorates = _by_id(self._rows("directorates"))
        units = _by_id(self._rows("work_units"))
        positions = _by_id(self._rows("positions"))
        result: list[Row] = []
        for row in rows:
            unit = units.get(row.get("work_unit_id") or "")
            directorate_id = unit.get("directorate_id") if unit else None
            result.append(
                {
                    **row,
                    "work_unit_display": format_display(unit),
                    "directorate_id": directorate_id,
                    "directorate_display": format_display(directorates.get(directorate_id or "")),
                    "assistant_deputy_position_display": format_display(
                        positions.get(row.get("assistant_deputy_position_id") or "")
                    ),
                }
            )
        return result

    def blocking_reason(self, entity_id: str) -> str | None:
        for position in self._rows("positions"):
            if position.get("affair_id") == entity_id and _is_active(position):
                return "Cannot delete affair with active positions"
        return None

    def check_children(self, entity_id: str) -> dict[str, Any]:
        self.get(entity_id)
        positions = [
            position
            for position in self._rows("positions")
            if position.get("affair_id") == entity_id and _is_active(position)
        ]
        return {
            "has_children": bool(positions),
            "positions": len(positions),
            "total": len(positions),
        }


class PositionModel(HierarchyModel):
    """Role slot that may reference a directorate, work unit and affair at once."""

    table = "positions"
    label = "position"
    code_prefix = "POS"
    references = (
        ("directorate_id", "directorates", "Directorate"),
        ("work_unit_id", "work_units", "Work unit"),
        ("affair_id", "affairs", "Affair"),
        ("parent_position_id", "positions", "Parent position"),
    )
    filter_fields = (
        "is_active",
        "position_type",
        "position_level",
        "directorate_id",
        "work_unit_id",
        "affair_id",
        "parent_position_id",
    )

    def denormalize(self, rows: list[Row]) -> list[Row]:
        directorates = _by_id(self._rows("directorates"))
        units = _by_id(self._rows("work_units"))
        affairs = _by_id(self._rows("affairs"))
        positions = _by_id(self._rows())
        return [
            {
                **row,
                "directorate_display": format_display(directorates.get(row.get("directorate_id") or "")),
                "work_unit_display": format_display(units.get(row.get("work_unit_id") or "")),
                "affair_display": format_display(affairs.get(row.get("affair_id") or "")),
                "parent_position_display": format_display(
                    positions.get(row.get("parent_position_id") or "")
                ),
            }
            for row in rows
        ]

    def update(self, entity_id: str, data: Row, actor_id: str | None) -> Row:
        if data.get("parent_position_id") == entity_id:
            raise ConflictError("A position cannot report to itself")
        return super().update(entity_id, data, actor_id)

    def _active_assignments(self, entity_id: str) -> list[Row]:
        return [
            item
            for item in self._rows("position_assignments")
            if item.get("position_id") == entity_id
            and item.get("assignment_status") == AssignmentStatus.ACTIVE
        ]

    def blocking_reason(self, entity_id: str) -> str | None:
        if self._active_assignments(entity_id):
            return "Cannot delete position with active assignments"
        return None

    def check_children(self, entity_id: str) -> dict[str, Any]:
        self.get(entity_id)
        assignments = self._active_assignments(entity_id)
        subordinates = [
            row
            for row in self._rows()
            if row.get("parent_position_id") == entity_id and _is_active(row)
        ]
        total = len(assignments) + len(subordinates)
        return {
            "has_children": total > 0,
            "assignments": len(assignments),
            "positions": len(subordinates),
            "total": total,
        }


class PositionAssignmentModel:
    table = "position_assignments"
    filter_fields = ("user_id", "position_id", "assignment_status", "is_primary")

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def _rows(self) -> list[Row]:
        return self._store.get_all(self.table)

    def find_by_id(self, assignment_id: str) -> Row | None:
        for row in self._rows():
            if row.get("id") == assignment_id:
                return row
        return None

    def get(self, assignment_id: str) -> Row:
        row = self.find_by_id(assignment_id)
        if row is None:
            raise NotFoundError("Assignment not found")
        return row

    def _positions(self) -> dict[str, Row]:
        return _by_id(self._store.get_all("positions"))

    def get_all(self, filters: dict[str, Any] | None = None) -> list[Row]:
        active_filters = {
            key: value
            for key, value in (filters or {}).items()
            if key in self.filter_fields and value is not None
        }
        positions = self._positions()
        return [
            {**row, "position_display": format_display(positions.get(row["position_id"]))}
            for row in self._rows()
            if all(row.get(key) == value for key, value in active_filters.items())
        ]

    def get_by_user(self, user_id: str) -> list[Row]:
        return self.get_all({"user_id": user_id, "assignment_status": AssignmentStatus.ACTIVE})

    def get_primary_position(self, user_id: str) -> Row | None:
        positions = self._positions()
        for row in self.get_by_user(user_id):
            if row.get("is_primary"):
                return positions.get(row["position_id"])
        return None

    def create(self, data: Row, actor_id: str | None) -> Row:
        if data.get("position_id") not in self._positions():
            raise NotFoundError("Position not found")
        now = now_utc()
        row: Row = {
            **{key: value for key, value in data.items() if value is not None and key not in PROTECTED_FIELDS},
            "id": str(uuid4()),
            "assignment_status": AssignmentStatus.ACTIVE,
            "created_at": now,
            "created_by": actor_id,
            "updated_at": now,
            "updated_by": actor_id,
        }
        row.setdefault("assignment_date", now)
        row.setdefault("start_date", now)
        self._store.insert(self.table, row)
        return self.get(row["id"])

    def update(self, assignment_id: str, data: Row, actor_id: str | None) -> Row:
        self.get(assignment_id)
        partial = {
            key: value
            for key, value in data.items()
            if key not in PROTECTED_FIELDS and key != "assignment_status"
        }
        partial["updated_at"] = now_utc()
        partial["updated_by"] = actor_id
        self._store.update(self.table, "id", assignment_id, partial)
        return self.get(assignment_id)

    def end_assignment(self, assignment_id: str, actor_id: str | None, end_date: Any = None) -> Row:
        row = self.get(assignment_id)
        source = AssignmentStatus(row["assignment_status"])
        if not can_transition_assignment(source, AssignmentStatus.ENDED):
            raise ConflictError("Assignment already ended")
        now = now_utc()
        self._store.update(
            self.table,
            "id",
            assignment_id,
            {
                "end_date": end_date or now,
                "assignment_status": AssignmentStatus.ENDED,
                "updated_at": now,
                "updated_by": actor_id,
            },
        )
        return self.get(assignment_id)

    def delete(self, assignment_id: str) -> Row:
        row = self.get(assignment_id)
        self._store.delete(self.table, "id", assignment_id)
        return row


def find_dangling_references(store: RecordStore) -> list[dict[str, str]]:
    """List rows whose parent reference points at a row that no longer exists."""
    ids: dict[str, set[str]] = {}
    dangling: list[dict[str, str]] = []
    for table, field, target in REFERENCE_FIELDS:
        if target not in ids:
            ids[target] = {row["id"] for row in store.get_all(target)}
        for row in store.get_all(table):
            ref_id = row.get(field)
            if ref_id and ref_id not in ids[target]:
                dangling.append(
                    {
                        "entity_type": TABLE_ENTITY_TYPES[table],
                        "id": row["id"],
                        "code": row.get("code") or "",
                        "field": field,
                        "missing_id": ref_id,
                    }
                )
    return dangling
