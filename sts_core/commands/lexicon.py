# sts_core/commands/lexicon.py
# Word tables and small text helpers shared by the rule engine and the extractors.

import re
from typing import Dict, List, Optional, Tuple

COLORS = (
    "black", "blue", "brown", "cyan", "gray", "green",
    "magenta", "orange", "purple", "red", "white", "yellow",
)

# spoken variants -> canonical color
COLOR_ALIASES: Dict[str, str] = {
    "grey": "gray",
    "violet": "purple",
    "pink": "magenta",
    "golden": "yellow",
    "gold": "yellow",
    "silver": "gray",
    "aqua": "cyan",
    "teal": "cyan",
}

SHAPES = ("box", "sphere", "cone", "cylinder")

SHAPE_ALIASES: Dict[str, str] = {
    "box": "box", "boxes": "box", "cube": "box", "cubes": "box", "block": "box", "blocks": "box",
    "sphere": "sphere", "spheres": "sphere", "ball": "sphere", "balls": "sphere",
    "orb": "sphere", "orbs": "sphere",
    "cone": "cone", "cones": "cone", "pyramid": "cone",
    "cylinder": "cylinder", "cylinders": "cylinder", "tube": "cylinder", "tubes": "cylinder",
}

SYSTEM_WORDS = ("start", "stop", "play", "begin", "pause", "enable", "disable")
SYSTEM_ON_WORDS = ("start", "play", "enable", "begin")
# spoken forms -> system word ("restart the simulation", "stopping physics")
SYSTEM_WORD_FORMS: Dict[str, str] = {
    form: word
    for word, forms in {
        "start": ("starts", "started", "starting", "restart", "restarts", "restarted", "restarting"),
        "stop": ("stops", "stopped", "stopping"),
        "play": ("plays", "played", "playing", "replay"),
        "begin": ("begins", "began", "beginning"),
        "pause": ("pauses", "paused", "pausing"),
        "enable": ("enables", "enabled", "enabling", "reenable"),
        "disable": ("disables", "disabled", "disabling"),
    }.items()
    for form in (word,) + forms
}

MOVEMENT_WORDS = ("right", "left", "forward", "backward", "move", "lift", "slide", "translate")
ROTATION_WORDS = ("rotate", "spin", "twist", "tilt", "flip")
SCALING_WORDS = ("big", "small", "bigger", "smaller", "scale")
# comparatives carry their own target ("bigger" alone still means "scale it")
SCALING_COMPARATIVES = ("bigger", "smaller", "larger", "scale", "shrink", "grow", "enlarge")
SCALE_DOWN_WORDS = ("smaller", "shrink", "down", "tinier", "reduce")
SCALE_UP_WORDS = ("bigger", "larger", "grow", "enlarge", "up")

# verbs that explicitly ask for something new
CREATION_VERBS = ("create", "add", "spawn", "build", "generate", "place", "insert", "give")
# every verb the classifier treats as "an action is present"
ACTION_VERBS = CREATION_VERBS + (
    "make", "turn", "change", "paint", "color", "colour", "set",
    "move", "lift", "slide", "translate", "push", "pull", "put", "shift",
    "scale", "shrink", "grow", "enlarge", "resize",
    "rotate", "spin", "twist", "tilt", "flip",
) + tuple(SYSTEM_WORD_FORMS)

# "it", "this", "the cube" ... point at an object that already exists
REFERENT_WORDS = ("it", "this", "that", "them", "these", "those", "the")

MATERIAL_WORDS = (
    "shiny", "shinier", "metallic", "metal", "roughness", "rough", "rougher",
    "matte", "glossy", "smooth", "smoother", "polished", "dull", "reflective", "chrome",
)

# word -> (axis, sign). Multi-word keys are matched as phrases before single words.
DIRECTION_TABLE: Dict[str, Tuple[str, int]] = {
    "toward me": ("z", 1),
    "towards me": ("z", 1),
    "right": ("x", 1),
    "left": ("x", -1),
    "up": ("y", 1),
    "upward": ("y", 1),
    "upwards": ("y", 1),
    "down": ("y", -1),
    "downward": ("y", -1),
    "downwards": ("y", -1),
    "forward": ("z", 1),
    "forwards": ("z", 1),
    "front": ("z", 1),
    "back": ("z", -1),
    "backward": ("z", -1),
    "backwards": ("z", -1),
    "away": ("z", -1),
}

WORD_NUMBERS: Dict[str, int] = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14, "fifteen": 15,
    "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19, "twenty": 20,
    "a couple": 2, "couple": 2, "double": 2, "twice": 2, "triple": 3, "half": 0.5,
    "a few": 3, "few": 3,
}

_TOKEN_RE = re.compile(r"[a-z]+|\d+(?:\.\d+)?")
_NUMBER_RE = re.compile(r"(?<![\w.])(-?\d+(?:\.\d+)?)(?![\w.])")


def clean_text(text: str) -> str:
    """Lower-case, trim and collapse whitespace; punctuation is kept."""
    return " ".join((text or "").lower().split())


def tokenize(text: str) -> List[str]:
    return _TOKEN_RE.findall((text or "").lower())


def has_any(tokens: List[str], words) -> bool:
    return any(t in words for t in tokens)


def first_of(tokens: List[str], words) -> Optional[str]:
    for t in tokens:
        if t in words:
            return t
    return None


def has_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", clean_text(text)) is not None


def word_to_number(word: str):
    """Convert spoken numbers to ints (floats for 'half')."""
    return WORD_NUMBERS.get((word or "").lower())


def parse_number(s):
    try:
        return float(s)
    except (TypeError, ValueError):
        return None


def find_numbers(text: str) -> List[float]:
    """All literal numbers in order of appearance, digits or spoken words."""
    t = clean_text(text)
    found = []
    for m in _NUMBER_RE.finditer(t):
        v = parse_number(m.group(1))
        if v is not None:
            found.append((m.start(), m.end(), v))
    for word, value in WORD_NUMBERS.items():
        for m in re.finditer(rf"\b{re.escape(word)}\b", t):
            found.append((m.start(), m.end(), float(value)))
    # longest span first at each position, then skip spans nested in a kept one ("a couple" / "couple")
    found.sort(key=lambda span: (span[0], -(span[1] - span[0])))
    out: List[float] = []
    last_end = -1
    for start, end, value in found:
        if start < last_end:
            continue
        out.append(value)
        last_end = end
    return out


def find_color(text: str) -> Optional[str]:
    for tok in tokenize(text):
        if tok in COLORS:
            return tok
        if tok in COLOR_ALIASES:
            return COLOR_ALIASES[tok]
    return None


def normalize_color(value) -> Optional[str]:
    v = str(value or "").strip().lower()
    if v in COLORS:
        return v
    return COLOR_ALIASES.get(v)


def find_shape(text: str) -> Optional[str]:
    for tok in tokenize(text):
        if tok in SHAPE_ALIASES:
            return SHAPE_ALIASES[tok]
    return None


def normalize_shape(value) -> Optional[str]:
    v = str(value or "").strip().lower()
    return SHAPE_ALIASES.get(v)


def find_direction(text: str) -> Optional[Tuple[str, int]]:
    """Resolve the first direction word to (axis, sign) using DIRECTION_TABLE."""
    t = clean_text(text)
    best = None
    for phrase, mapping in DIRECTION_TABLE.items():
        m = re.search(rf"\b{re.escape(phrase)}\b", t)
        if m is None:
            continue
        # earliest match wins; on ties the longer phrase wins ("toward me" over "me")
        key = (m.start(), -len(phrase))
        if best is None or key < best[0]:
            best = (key, mapping)
    return best[1] if best else None


# ---------------- Material words ----------------

METAL_WORDS = ("metallic", "metal", "chrome", "steel", "iron", "silver", "gold", "golden")
NON_METAL_PHRASES = ("not metallic", "non metallic", "nonmetallic", "non-metallic", "not metal")
SHINY_WORDS = ("shiny", "shinier", "glossy", "polished", "smooth", "smoother", "reflective")
ROUGH_WORDS = ("rough", "rougher", "matte", "dull", "grainy")
LARGE_WORDS = ("big", "large", "huge", "giant", "bigger", "larger")
SMALL_WORDS = ("small", "tiny", "little", "mini", "smaller", "tinier")
