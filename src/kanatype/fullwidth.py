"""Half-width/full-width translation for composition input.

https://www.unicode.org/charts/nameslist/n_FF00.html

The two directions are deliberately not inverses. Punctuation typed in kana mode is
widened before it reaches the backend, and nothing ever narrows it again. Full-width
Latin letters are never produced here (letters and digits are left for the backend to
transliterate), so only the lowercase range ever needs undoing.
"""

HALF_TO_FULL = {
    "!": "！",
    '"': "＂",
    "#": "＃",
    "$": "＄",
    "%": "％",
    "&": "＆",
    "'": "＇",
    "(": "（",
    ")": "）",
    "*": "＊",
    "+": "＋",
    # Japanese text uses the ideographic comma and full stop, and the long vowel mark
    # for the hyphen key.
    ",": "、",
    "-": "ー",
    ".": "。",
    "/": "／",
    ":": "：",
    ";": "；",
    "<": "＜",
    "=": "＝",
    ">": "＞",
    "?": "？",
    "@": "＠",
    "[": "［",
    "\\": "＼",
    "]": "］",
    "^": "＾",
    "_": "＿",
    "`": "｀",
    "{": "｛",
    "|": "｜",
    "}": "｝",
    "~": "～",
}

_WIDEN_TABLE = str.maketrans(HALF_TO_FULL)

FULLWIDTH_SMALL_A = 0xFF41
FULLWIDTH_SMALL_Z = 0xFF5A
FULLWIDTH_OFFSET = 0xFEE0


def to_fullwidth(text: str) -> str:
    return text.translate(_WIDEN_TABLE)


def to_halfwidth(text: str) -> str:
    return "".join(
        chr(ord(c) - FULLWIDTH_OFFSET) if FULLWIDTH_SMALL_A <= ord(c) <= FULLWIDTH_SMALL_Z else c for c in text
    )
