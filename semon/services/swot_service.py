from __future__ import annotations

from typing import Any

from sqlmodel import Session, col, select

from semon.domain.models import (
    CATEGORY_ANALYSIS_TYPE,
    AnalysisItem,
    AnalysisItemCreate,
    AnalysisItemUpdate,
    AnalysisType,
    ImpactLevel,
    OrganizationalGoal,
    SwotCategory,
    now_utc,
)
from semon.infra.db import get_engine
from semon.services.organization_service import next_code

IMPACT_WEIGHTS: dict[ImpactLevel, int] = {
    ImpactLevel.HIGH: 3,
    ImpactLevel.MEDIUM: 2,
    ImpactLevel.LOW: 1,
}


class SwotError(Exception):
    pass


class NotFoundError(SwotError):
    pass


def item_code_prefix(category: SwotCategory) -> str:
    kind = "INT" if CATEGORY_ANALYSIS_TYPE[category] == AnalysisType.INTERNAL else "EXT"
    return f"{kind}-{category.value[:3]}"


def impact_score(items: list[AnalysisItem]) -> float:
    total = sum(IMPACT_WEIGHTS[ImpactLevel(item.impact_level)] for item in items)
    return round(total / (len(items) or 1), 2)


def recommendation_for(score: float) -> dict[str, str]:
    if score >= 2.5:
        return {
            "type": "info",
            "message": "High impact factors detected. Focus on leveraging strengths and opportunities.",
        }
    if score >= 1.5:
        return {
            "type": "warning",
            "message": "Moderate impact. Consider addressing key weaknesses and threats.",
        }
    return {
        "type": "success",
        "message": "Low impact factors. Favorable conditions for goal achievement.",
    }


def tows_strategies(grouped: dict[str, list[AnalysisItem]]) -> dict[str, list[dict[str, str]]]:
    """Cross internal and external factors into SO, WO, ST and WT pairings."""
    strengths = grouped[SwotCategory.STRENGTH.value]
    weaknesses = grouped[SwotCategory.WEAKNESS.value]
    opportunities = grouped[SwotCategory.OPPORTUNITY.value]
    threats = grouped[SwotCategory.THREAT.value]

    def _pair(first: AnalysisItem, second: AnalysisItem, description: str) -> dict[str, str]:
        return {"internal": first.code, "external": second.code, "description": description}

    return {
        "SO": [
            _pair(s, o, f'Use "{s.description}" to leverage "{o.description}"')
            for s in strengths
            for o in opportunities
        ],
        "WO": [
            _pair(w, o, f'Address "{w.description}" by taking advantage of "{o.description}"')
            for w in weaknesses
            for o in opportunities
        ],
        "ST": [
            _pair(s, t, f'Use "{s.description}" to mitigate "{t.description}"')
            for s in strengths
            for t in threats
        ],
        "WT": [
            _pair(w, t, f'Minimize "{w.description}" and "{t.description}" to avoid risks')
            for w in weaknesses
            for t in threats
        ],
    }


class SwotService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def list_items(self, goal_id: str, category: SwotCategory | None = None) -> list[AnalysisItem]:
        with self._session() as session:
            statement = select(AnalysisItem).where(AnalysisItem.goal_id == goal_id)
            if category is not None:
                statement = statement.where(AnalysisItem.category == category)
            return list(session.exec(statement.order_by(col(AnalysisItem.code))).all())

    def _grouped(self, goal_id: str) -> dict[str, list[AnalysisItem]]:
        grouped: dict[str, list[AnalysisItem]] = {category.value: [] for category in SwotCategory}
        for item in self.list_items(goal_id):
            grouped[SwotCategory(item.category).value].append(item)
        return grouped

    def summary(self, goal_id: str) -> dict[str, int]:
        return {category: len(items) for category, items in self._grouped(goal_id).items()}

    def matrix(self, goal_id: str) -> dict[str, Any]:
        grouped = self._grouped(goal_id)
        return {
            "goal_id": goal_id,
            "items": {category: [item.model_dump() for item in items] for category, items in grouped.items()},
            "summary": {category: len(items) for category, items in grouped.items()},
            "strategies": tows_strategies(grouped),
        }

    def impact_analysis(self, goal_id: str) -> dict[str, Any]:
        grouped = self._grouped(goal_id)
        internal = grouped[SwotCategory.STRENGTH.value] + grouped[SwotCategory.WEAKNESS.value]
        external = grouped[SwotCategory.OPPORTUNITY.value] + grouped[SwotCategory.THREAT.value]
        everything = internal + external
        score = impact_score(everything)
        return {
            "goal_id": goal_id,
            "total_items": len(everything),
            "internal_score": impact_score(internal),
            "external_score": impact_score(external),
            "impact_score": score,
            "by_category": {category: impact_score(items) for category, items in grouped.items()},
            "recommendation": recommendation_for(score),
        }

    def create_item(self, payload: AnalysisItemCreate, actor_id: str | None) -> AnalysisItem:
        with self._session() as session:
            if session.get(OrganizationalGoal, payload.goal_id) is None:
                raise NotFoundError("Goal not found")
            prefix = item_code_prefix(payload.category)
            codes = [
                item.code
                for item in session.exec(
                    select(AnalysisItem).where(AnalysisItem.category == payload.category)
                ).all()
            ]
            item = AnalysisItem(
                code=next_code(prefix, codes),
                goal_id=payload.goal_id,
                analysis_type=CATEGORY_ANALYSIS_TYPE[payload.category],
                category=payload.category,
                description=payload.description.strip(),
                impact_level=payload.impact_level,
                created_by=actor_id,
            )
            session.add(item)
            session.commit()
            session.refresh(item)
            return item

    def update_item(self, item_id: str, payload: AnalysisItemUpdate) -> AnalysisItem:
        with self._session() as session:
            item = session.get(AnalysisItem, item_id)
            if item is None:
                raise NotFoundError("Analysis item not found")
            for key, value in payload.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(item, key, value)
            item.updated_at = now_utc()
            session.add(item)
            session.commit()
            session.refresh(item)
            return item

    def delete_item(self, item_id: str) -> AnalysisItem:
        with self._session() as session:
            item = session.get(AnalysisItem, item_id)
            if item is None:
                raise NotFoundError("Analysis item not found")
            session.delete(item)
            session.commit()
            return item
