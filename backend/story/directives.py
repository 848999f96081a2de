"""
Directive Parser - turns bracketed tags in narrator text into typed commands.

Grammar (tag names are case-insensitive):

    [SKILL_CHECK: Skill N+ reason]
    [SCENE: id]  or  [SCENE: id, TIME: +N(d|h|w)]
    [FLASHBACK: id]
    [MONTAGE: id1, id2, ...]
    [NEXT_SCENE: id]            legacy synonym for SCENE
    [STAGE: id]
    [DECISION: id = value]
    [BEAT_COMPLETE: id]
    [NPC_DIALOGUE: id]

The text is scanned once for ``[NAME: body]`` tags. Each tag body is parsed by
the handler registered for its name; malformed bodies and unknown names are
ignored. At most one directive is returned: the tag kind earliest in
DIRECTIVE_PRIORITY wins, and among tags of that kind the first occurrence.
Parsing never raises.
"""

import re
from typing import Callable, Dict, List, Optional, Tuple

from models.directives import (
    BeatCompleteDirective,
    DecisionDirective,
    Directive,
    FlashbackDirective,
    MontageDirective,
    NpcDialogueDirective,
    SceneDirective,
    SkillCheckDirective,
    StageDirective,
)
from models.story import TimeSkip

# Order in which tag kinds win when several are present
DIRECTIVE_PRIORITY: Tuple[str, ...] = (
    "SKILL_CHECK",
    "SCENE",
    "FLASHBACK",
    "MONTAGE",
    "NEXT_SCENE",
    "STAGE",
    "DECISION",
    "BEAT_COMPLETE",
    "NPC_DIALOGUE",
)

SCENE_TAGS = frozenset({"SCENE", "FLASHBACK", "MONTAGE", "NEXT_SCENE", "STAGE"})

_TAG = re.compile(r"\[([A-Za-z_]+):\s*([^\]]*)\]")

_SCENE_BODY = re.compile(
    r"([a-z0-9-]+)(?:\s*,\s*TIME:\s*\+?(\d+)([dhw]))?", re.IGNORECASE
)
_SCENE_ID = re.compile(r"[a-z0-9-]+", re.IGNORECASE)
_UNDERSCORE_ID = re.compile(r"[a-z0-9_-]+", re.IGNORECASE)
_MONTAGE_BODY = re.compile(r"[a-z0-9,\s-]+", re.IGNORECASE)
_SKILL_BODY = re.compile(r"(\w+)\s+(\d+)\+\s*(.+)", re.DOTALL)
_DECISION_BODY = re.compile(r"([a-z0-9_-]+)\s*=\s*(.+)", re.IGNORECASE | re.DOTALL)


def _parse_scene(body: str) -> Optional[Directive]:
    match = _SCENE_BODY.fullmatch(body)
    if not match:
        return None
    time_skip = None
    if match.group(2) and match.group(3):
        time_skip = TimeSkip(amount=int(match.group(2)), unit=match.group(3).lower())
    return SceneDirective(scene_id=match.group(1), time_skip=time_skip)


def _parse_next_scene(body: str) -> Optional[Directive]:
    if not _SCENE_ID.fullmatch(body):
        return None
    return SceneDirective(scene_id=body)


def _parse_flashback(body: str) -> Optional[Directive]:
    if not _SCENE_ID.fullmatch(body):
        return None
    return FlashbackDirective(scene_id=body)


def _parse_montage(body: str) -> Optional[Directive]:
    if not _MONTAGE_BODY.fullmatch(body):
        return None
    scene_ids = [part.strip() for part in body.split(",") if part.strip()]
    if not scene_ids:
        return None
    return MontageDirective(scene_ids=scene_ids)


def _parse_stage(body: str) -> Optional[Directive]:
    if not _SCENE_ID.fullmatch(body):
        return None
    return StageDirective(stage_id=body)


def _parse_skill_check(body: str) -> Optional[Directive]:
    match = _SKILL_BODY.fullmatch(body)
    if not match:
        return None
    reason = match.group(3).strip()
    if not reason:
        return None
    return SkillCheckDirective(
        skill=match.group(1), threshold=int(match.group(2)), reason=reason
    )


def _parse_decision(body: str) -> Optional[Directive]:
    match = _DECISION_BODY.fullmatch(body)
    if not match:
        return None
    value = match.group(2).strip()
    if not value:
        return None
    return DecisionDirective(id=match.group(1), value=value)


def _parse_beat_complete(body: str) -> Optional[Directive]:
    if not _UNDERSCORE_ID.fullmatch(body):
        return None
    return BeatCompleteDirective(beat_id=body)


def _parse_npc_dialogue(body: str) -> Optional[Directive]:
    if not _SCENE_ID.fullmatch(body):
        return None
    return NpcDialogueDirective(npc_id=body)


TAG_PARSERS: Dict[str, Callable[[str], Optional[Directive]]] = {
    "SKILL_CHECK": _parse_skill_check,
    "SCENE": _parse_scene,
    "FLASHBACK": _parse_flashback,
    "MONTAGE": _parse_montage,
    "NEXT_SCENE": _parse_next_scene,
    "STAGE": _parse_stage,
    "DECISION": _parse_decision,
    "BEAT_COMPLETE": _parse_beat_complete,
    "NPC_DIALOGUE": _parse_npc_dialogue,
}


def scan_tags(text: str) -> List[Tuple[str, Directive, str]]:
    """
    Find every well-formed directive tag in text, in order of appearance.

    Returns:
        List of (TAG_NAME, directive, raw tag text)
    """
    if not isinstance(text, str):
        return []

    found = []
    for match in _TAG.finditer(text):
        name = match.group(1).upper()
        parser = TAG_PARSERS.get(name)
        if parser is None:
            continue
        directive = parser(match.group(2))
        if directive is not None:
            found.append((name, directive, match.group(0)))
    return found


def _select(tags: List[Tuple[str, Directive, str]], allowed) -> Optional[Directive]:
    for name in DIRECTIVE_PRIORITY:
        if name not in allowed:
            continue
        for tag_name, directive, _ in tags:
            if tag_name == name:
                return directive
    return None


def parse_directive(text: str) -> Optional[Directive]:
    """
    Parse the single winning directive from narrator text.

    Returns:
        A Directive, or None when the text holds no well-formed tag
    """
    return _select(scan_tags(text), TAG_PARSERS.keys())


def parse_scene_directive(text: str) -> Optional[Directive]:
    """Like parse_directive, restricted to scene navigation tags."""
    return _select(scan_tags(text), SCENE_TAGS)


def strip_directives(text: str) -> str:
    """Remove every well-formed directive tag and collapse leftover blank lines."""
    if not isinstance(text, str):
        return ""
    for _, _, raw in scan_tags(text):
        text = text.replace(raw, "", 1)
    return re.sub(r"\n{3,}", "\n\n", text).strip()
