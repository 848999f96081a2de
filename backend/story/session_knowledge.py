"""
Session knowledge (session-only) - per-session orchestration state for a scene.

Tracks which NPCs are in the scene, what each has learned this session and
narrator pacing. Nothing here is persisted; the durable counterpart is
world_facts.WorldFactsStore, and the two are never merged.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.story import StoryState

BASE_URGENCY = 0.5
CRISIS_URGENCY_BONUS = 0.3
CRISIS_FLAG = "volcano_active"


class SceneFocus(BaseModel):
    id: Optional[str] = None
    objectives: List[str] = Field(default_factory=list)
    tensions: List[str] = Field(default_factory=list)


class NpcSessionState(BaseModel):
    scene_role: str = "present"
    urgency: float = BASE_URGENCY
    known_facts: List[str] = Field(default_factory=list)
    behavior_hints: List[str] = Field(default_factory=list)


class SharedKnowledge(BaseModel):
    source: str
    witnesses: List[str] = Field(default_factory=list)


class NarratorDirectives(BaseModel):
    pacing: str = "normal"
    npc_to_feature: Optional[str] = None


class SessionState(BaseModel):
    adventure_id: str = "unknown"
    scene: SceneFocus = Field(default_factory=SceneFocus)
    npcs: Dict[str, NpcSessionState] = Field(default_factory=dict)
    shared_knowledge: Dict[str, SharedKnowledge] = Field(default_factory=dict)
    narrator_directives: NarratorDirectives = Field(default_factory=NarratorDirectives)


def create_session_state(adventure_id: Optional[str] = None) -> SessionState:
    return SessionState(adventure_id=adventure_id or "unknown")


def _crisis_active(story_state: Optional[StoryState]) -> bool:
    return bool(story_state is not None and story_state.flags.get(CRISIS_FLAG))


def get_scene_role(scene: Dict[str, Any], npc_id: str) -> str:
    rules = (scene.get("npc_injection_rules") or {}).get(npc_id) or {}
    return rules.get("demeanor") or "present"


def update_scene_context(
    session: SessionState, scene: Optional[Dict[str, Any]], story_state: Optional[StoryState] = None
) -> None:
    """
    Point the session at a scene and start tracking the NPCs present.

    NPCs already tracked keep what they know. An active crisis flag on the
    story sets urgent pacing.
    """
    if not scene:
        return

    session.scene = SceneFocus(
        id=scene.get("id"),
        objectives=list(scene.get("objectives") or []),
        tensions=list(scene.get("tensions") or []),
    )

    for npc_id in scene.get("npcs_present") or []:
        if npc_id not in session.npcs:
            session.npcs[npc_id] = NpcSessionState(scene_role=get_scene_role(scene, npc_id))

    if _crisis_active(story_state):
        session.narrator_directives.pacing = "urgent"


def compute_goal_urgency(
    session: SessionState,
    npc_id: str,
    story_state: Optional[StoryState] = None,
    crisis_boosts: Optional[Dict[str, float]] = None,
) -> float:
    """
    Urgency in [0, 1] for an NPC pursuing its goals.

    An active crisis raises every NPC's urgency; crisis_boosts adds a further
    per-NPC amount during a crisis. The value is stored on the NPC's session
    state when the NPC is tracked.

    Args:
        session: Session the NPC belongs to
        npc_id: NPC to score
        story_state: Story state supplying the crisis flag
        crisis_boosts: Extra urgency by NPC id while the crisis is active

    Returns:
        The clamped urgency
    """
    urgency = BASE_URGENCY
    if _crisis_active(story_state):
        urgency += CRISIS_URGENCY_BONUS + (crisis_boosts or {}).get(npc_id, 0.0)
    urgency = min(1.0, max(0.0, urgency))

    npc_state = session.npcs.get(npc_id)
    if npc_state is not None:
        npc_state.urgency = urgency
    return urgency


def propagate_knowledge(session: SessionState, source_npc_id: str, fact: str) -> SharedKnowledge:
    """
    Share a fact revealed by one NPC with every other NPC in the session.

    The source is never listed among its own witnesses.
    """
    entry = SharedKnowledge(source=source_npc_id)
    for npc_id, npc_state in session.npcs.items():
        if npc_id == source_npc_id:
            continue
        if fact not in npc_state.known_facts:
            npc_state.known_facts.append(fact)
        entry.witnesses.append(npc_id)

    session.shared_knowledge[fact] = entry
    return entry


def build_narrator_directives(session: SessionState) -> str:
    lines = [
        "=== NARRATOR DIRECTIVES ===",
        f"Scene: {session.scene.id or 'unknown'}",
        f"Pacing: {session.narrator_directives.pacing}",
    ]
    if session.scene.objectives:
        lines.append("")
        lines.append("Scene Objectives:")
        lines.extend(f"- {objective}" for objective in session.scene.objectives)
    if session.narrator_directives.npc_to_feature:
        lines.append("")
        lines.append(f"Feature NPC: {session.narrator_directives.npc_to_feature}")
    return "\n".join(lines) + "\n"


def build_npc_directives(session: SessionState, npc_id: str) -> str:
    """Scene guidance block for one NPC's prompt."""
    npc_state = session.npcs.get(npc_id)
    if npc_state is None:
        return "=== SCENE GUIDANCE ===\nNo specific scene context.\n"

    lines = [
        "=== SCENE GUIDANCE ===",
        f"Scene: {session.scene.id or 'unknown'}",
        f"Your role: {npc_state.scene_role}",
        f"Urgency: {npc_state.urgency:.1f}",
    ]
    sections = (
        ("Scene is about:", session.scene.objectives),
        ("You know:", npc_state.known_facts),
        ("Behavior hints:", npc_state.behavior_hints),
    )
    for heading, items in sections:
        if items:
            lines.append("")
            lines.append(heading)
            lines.extend(f"- {item}" for item in items)
    return "\n".join(lines) + "\n"
