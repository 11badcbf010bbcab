# sts_core/agents/rules.py
# Local, deterministic reading of utterances: the keyword classification rules and
# the word-table parameter readers. Used as the offline provider and to pin down
# the parameters a service is allowed to guess.

import re
from typing import Any, Dict, List, Optional

from ..commands.lexicon import (
    ACTION_VERBS,
    CREATION_VERBS,
    LARGE_WORDS,
    MATERIAL_WORDS,
    METAL_WORDS,
    MOVEMENT_WORDS,
    NON_METAL_PHRASES,
    ROTATION_WORDS,
    ROUGH_WORDS,
    SCALE_DOWN_WORDS,
    SCALE_UP_WORDS,
    SCALING_COMPARATIVES,
    SCALING_WORDS,
    SHINY_WORDS,
    SMALL_WORDS,
    SYSTEM_WORD_FORMS,
    clean_text,
    find_color,
    find_direction,
    find_numbers,
    find_shape,
    first_of,
    has_any,
    has_phrase,
    tokenize,
)
from ..commands.schema import ActionKind

PRONOUNS = ("it", "this", "that", "them", "these", "those")
MODIFY_VERBS = ("make", "turn", "change", "paint", "color", "colour", "set")
RESIZE_WORDS = ("bigger", "smaller", "larger", "tinier")

_SIZE_RE = re.compile(r"\b(?:size|radius)\s+(?:of\s+)?(\d+(?:\.\d+)?)")
_CM_RE = re.compile(r"\b(?:cm|centimeters?|centimetres?)\b")
_DEGREES_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:degrees?|deg)\b")


# ---------------- Classification ----------------

def refers_to_existing(tokens: List[str]) -> bool:
    """'it', 'this', 'the cube' ... unless 'the' only follows a creation verb."""
    if has_any(tokens, PRONOUNS):
        return True
    return "the" in tokens and not has_any(tokens, CREATION_VERBS)


def is_scaling_request(tokens: List[str]) -> bool:
    # "a big sphere" describes a new object; "make it big" / "bigger" resizes one
    if not (has_any(tokens, SCALING_WORDS) or has_any(tokens, SCALING_COMPARATIVES)):
        return False
    if refers_to_existing(tokens):
        return True
    if has_any(tokens, CREATION_VERBS):
        return False
    return has_any(tokens, SCALING_COMPARATIVES)


def keyword_kind(text: str) -> Optional[ActionKind]:
    """The unambiguous keyword rules: system, movement, rotation, scaling."""
    tokens = tokenize(text)
    if not tokens:
        return None
    if has_any(tokens, SYSTEM_WORD_FORMS):
        return ActionKind.SYSTEM
    if has_any(tokens, MOVEMENT_WORDS):
        return ActionKind.MOVEMENT
    if has_any(tokens, ROTATION_WORDS):
        return ActionKind.ROTATION
    if is_scaling_request(tokens):
        return ActionKind.SCALING
    return None


def classify_text(text: str) -> Optional[ActionKind]:
    """
    Full priority chain; first match wins. Returns None when the utterance has
    an action verb none of the rules account for.
    """
    kind = keyword_kind(text)
    if kind is not None:
        return kind
    tokens = tokenize(text)
    if not tokens:
        return None

    verb = first_of(tokens, ACTION_VERBS)
    if verb is None:
        return ActionKind.CREATION

    existing = refers_to_existing(tokens)
    if verb in MODIFY_VERBS and existing and (find_color(text) or has_any(tokens, MATERIAL_WORDS)):
        return ActionKind.MODIFICATION
    if verb == "make" and existing and has_any(tokens, RESIZE_WORDS):
        return ActionKind.SCALING
    if "more" in tokens:
        return ActionKind.CREATION
    if verb == "make" or verb in CREATION_VERBS:
        return ActionKind.CREATION
    return None


# ---------------- Parameter readers ----------------

def read_roughness(tokens: List[str]) -> Optional[float]:
    if has_any(tokens, SHINY_WORDS):
        return 0.1
    if has_any(tokens, ROUGH_WORDS):
        return 0.9
    return None


def read_metallic(text: str) -> Optional[bool]:
    t = clean_text(text)
    if any(p in t for p in NON_METAL_PHRASES):
        return False
    if has_any(tokenize(t), METAL_WORDS):
        return True
    return None


def read_count(text: str) -> Optional[int]:
    """Spoken object count, ignoring a 'size 0.12' phrase."""
    t = _SIZE_RE.sub(" ", clean_text(text))
    for n in find_numbers(t):
        if n >= 1 and float(n).is_integer():
            return int(n)
    return None


def read_size(text: str) -> Optional[float]:
    m = _SIZE_RE.search(clean_text(text))
    if m:
        return float(m.group(1))
    tokens = tokenize(text)
    if has_any(tokens, LARGE_WORDS):
        return 0.15
    if has_any(tokens, SMALL_WORDS):
        return 0.1
    return None


def read_creation(text: str) -> Dict[str, Any]:
    tokens = tokenize(text)
    metallic = bool(read_metallic(text))
    roughness = read_roughness(tokens)
    count = read_count(text)
    if count is None:
        count = 3 if "more" in tokens else 1
    size = read_size(text)
    return {
        "shape": find_shape(text) or "box",
        "size": 0.12 if size is None else size,
        "color": find_color(text) or "white",
        "metallic": metallic,
        "roughness": roughness if roughness is not None else (0.2 if metallic else 0.5),
        "count": count,
    }


def read_modification(text: str) -> Dict[str, Any]:
    return {
        "color": find_color(text),
        "roughness": read_roughness(tokenize(text)),
        "metallic": read_metallic(text),
    }


def read_distance(text: str) -> Optional[float]:
    nums = find_numbers(text)
    if not nums:
        return None
    d = nums[0]
    if _CM_RE.search(clean_text(text)):
        d = d / 100.0
    return d


def read_movement(text: str) -> Dict[str, Any]:
    tokens = tokenize(text)
    found = find_direction(text)
    if found is None:
        found = ("y", 1) if "lift" in tokens else ("x", 1)
    axis, sign = found
    distance = read_distance(text)
    return {
        "axis": axis,
        "direction": "positive" if sign > 0 else "negative",
        "distance": 0.5 if distance is None else distance,
    }


def read_degrees(text: str) -> Optional[float]:
    t = clean_text(text)
    m = _DEGREES_RE.search(t)
    if m:
        return float(m.group(1))
    if has_phrase(t, "half turn") or has_phrase(t, "half way around"):
        return 180.0
    if has_phrase(t, "full turn") or has_phrase(t, "all the way around"):
        return 360.0
    nums = find_numbers(t)
    return nums[0] if nums else None


def read_rotation(text: str) -> Dict[str, Any]:
    t = clean_text(text)
    tokens = tokenize(t)
    if "tilt" in tokens or "flip" in tokens:
        axis = "x"
    elif "roll" in tokens:
        axis = "z"
    else:
        axis = "y"
    negative = ("clockwise" in tokens and "counter" not in tokens
                and "anti" not in tokens) or "right" in tokens
    degrees = read_degrees(t)
    return {
        "axis": axis,
        "direction": "negative" if negative else "positive",
        "degrees": 90.0 if degrees is None else degrees,
    }


def read_scale_factor(text: str) -> Optional[float]:
    """
    Scale factor as spoken. A number > 1 paired with smaller / shrink / scale down
    becomes its inverse; with no number, bigger is 2 and smaller is 0.5.
    """
    tokens = tokenize(text)
    down = has_any(tokens, SCALE_DOWN_WORDS)
    up = has_any(tokens, SCALE_UP_WORDS) or has_any(tokens, LARGE_WORDS)
    nums = [n for n in find_numbers(text) if n > 0]
    if nums:
        n = nums[0]
        if down and n > 1:
            return 1.0 / n
        return n
    if down or (has_any(tokens, SMALL_WORDS) and not up):
        return 0.5
    if up:
        return 2.0
    return None


def read_system_word(text: str) -> Optional[str]:
    form = first_of(tokenize(text), SYSTEM_WORD_FORMS)
    return SYSTEM_WORD_FORMS[form] if form else None
