"""
Static definitions for ideologies, decision cards, crises, and concepts.
All content lives under coalition/data/: ideologies.json, crises.json,
concepts.json and cards/<zone>.json (one deck per board zone).
The engine treats these as read-only lookups keyed by id.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DATA_DIR = Path(__file__).parent.parent / "data"
CARD_ZONES = ["early_term", "mid_term", "crisis_zone", "late_term"]


@dataclass(frozen=True)
class IdeologyDefinition:
    id: str
    name: str
    core_concern: str
    description: str = ""
    aligned_categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class IdeologyEffect:
    """One row of an option's aligned/opposed table. movement is a magnitude (>= 0)."""
    ideology: str
    movement: int


@dataclass(frozen=True)
class CardOption:
    id: str  # "A", "B", "C"
    name: str
    budget_change: int
    stability_change: int
    aligned: tuple[IdeologyEffect, ...] = ()
    opposed: tuple[IdeologyEffect, ...] = ()

    def aligned_movement(self, ideology: str | None) -> int | None:
        for entry in self.aligned:
            if entry.ideology == ideology:
                return entry.movement
        return None

    def opposed_movement(self, ideology: str | None) -> int | None:
        for entry in self.opposed:
            if entry.ideology == ideology:
                return entry.movement
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "budget_change": self.budget_change,
            "stability_change": self.stability_change,
            "aligned": [{"ideology": e.ideology, "movement": e.movement} for e in self.aligned],
            "opposed": [{"ideology": e.ideology, "movement": e.movement} for e in self.opposed],
        }


@dataclass(frozen=True)
class DecisionCard:
    """Immutable card content. Drawn by id; never mutated by the engine."""
    id: str
    zone: str
    category: str
    title: str
    description: str
    options: tuple[CardOption, ...]
    historical_note: Optional[str] = None

    def get_option(self, option_id: str) -> CardOption | None:
        for option in self.options:
            if option.id == option_id:
                return option
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "zone": self.zone,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "options": [o.to_dict() for o in self.options],
            "historical_note": self.historical_note,
        }


@dataclass(frozen=True)
class NationEffect:
    stability_change: int
    budget_change: int
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "stability_change": self.stability_change,
            "budget_change": self.budget_change,
            "message": self.message,
        }


@dataclass(frozen=True)
class CrisisDefinition:
    id: str
    name: str
    description: str
    severity: str  # "minor", "moderate", "severe"
    trigger_type: str  # "stability_threshold", "budget_threshold", "random"
    trigger_value: int
    contribution_threshold: int
    max_contribution_per_player: int
    success_effect: NationEffect
    failure_effect: NationEffect
    historical_note: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "severity": self.severity,
            "contribution_threshold": self.contribution_threshold,
            "max_contribution_per_player": self.max_contribution_per_player,
            "success_effect": self.success_effect.to_dict(),
            "failure_effect": self.failure_effect.to_dict(),
            "historical_note": self.historical_note,
        }


@dataclass(frozen=True)
class ConceptDefinition:
    id: str
    name: str
    description: str


@dataclass
class Definitions:
    """Bundle of all static content, passed to the reducer."""
    ideologies: dict[str, IdeologyDefinition]
    cards: dict[str, DecisionCard]
    crises: dict[str, CrisisDefinition]
    concepts: dict[str, ConceptDefinition] = field(default_factory=dict)

    def cards_for_zone(self, zone: str) -> list[DecisionCard]:
        return [c for c in self.cards.values() if c.zone == zone]


def _effects(rows: list[dict] | None) -> tuple[IdeologyEffect, ...]:
    return tuple(
        IdeologyEffect(ideology=str(r["ideology"]), movement=int(r["movement"]))
        for r in (rows or [])
    )


def card_from_dict(data: dict) -> DecisionCard:
    return DecisionCard(
        id=data["id"],
        zone=data["zone"],
        category=data["category"],
        title=data["title"],
        description=data.get("description", ""),
        options=tuple(
            CardOption(
                id=o["id"],
                name=o["name"],
                budget_change=int(o.get("budget_change", 0)),
                stability_change=int(o.get("stability_change", 0)),
                aligned=_effects(o.get("aligned")),
                opposed=_effects(o.get("opposed")),
            )
            for o in data["options"]
        ),
        historical_note=data.get("historical_note"),
    )


def crisis_from_dict(data: dict) -> CrisisDefinition:
    trigger = data.get("trigger") or {}
    success = data["success_effect"]
    failure = data["failure_effect"]
    return CrisisDefinition(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        severity=data.get("severity", "moderate"),
        trigger_type=trigger.get("type", "random"),
        trigger_value=int(trigger.get("value", 0)),
        contribution_threshold=int(data["contribution_threshold"]),
        max_contribution_per_player=int(data["max_contribution_per_player"]),
        success_effect=NationEffect(
            stability_change=int(success.get("stability_change", 0)),
            budget_change=int(success.get("budget_change", 0)),
            message=success.get("message", ""),
        ),
        failure_effect=NationEffect(
            stability_change=int(failure.get("stability_change", 0)),
            budget_change=int(failure.get("budget_change", 0)),
            message=failure.get("message", ""),
        ),
        historical_note=data.get("historical_note"),
    )


def load_static_definitions(data_dir: Path | str | None = None) -> Definitions:
    """
    Load all static content.

    Args:
        data_dir: Directory holding ideologies.json, crises.json, concepts.json
            and a cards/ subdirectory. Defaults to the packaged data.

    Returns: Definitions bundle.
    """
    data_dir = Path(data_dir) if data_dir is not None else DATA_DIR

    with open(data_dir / "ideologies.json", "r") as f:
        ideologies_data = json.load(f)
    ideologies = {
        d["id"]: IdeologyDefinition(
            id=d["id"],
            name=d["name"],
            core_concern=d.get("core_concern", ""),
            description=d.get("description", ""),
            aligned_categories=tuple(d.get("aligned_categories", [])),
        )
        for d in ideologies_data
    }

    cards: dict[str, DecisionCard] = {}
    for zone in CARD_ZONES:
        path = data_dir / "cards" / f"{zone}.json"
        if not path.exists():
            continue
        with open(path, "r") as f:
            for raw in json.load(f):
                card = card_from_dict(raw)
                cards[card.id] = card

    with open(data_dir / "crises.json", "r") as f:
        crises_data = json.load(f)
    # Dict preserves file order, which is the trigger evaluation order
    crises = {d["id"]: crisis_from_dict(d) for d in crises_data}

    concepts: dict[str, ConceptDefinition] = {}
    concepts_path = data_dir / "concepts.json"
    if concepts_path.exists():
        with open(concepts_path, "r") as f:
            for d in json.load(f):
                concepts[d["id"]] = ConceptDefinition(
                    id=d["id"], name=d["name"], description=d.get("description", "")
                )

    return Definitions(ideologies=ideologies, cards=cards, crises=crises, concepts=concepts)
