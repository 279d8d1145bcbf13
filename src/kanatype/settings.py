import dataclasses
import enum
import json
import operator
import pathlib
import typing

import cattrs
from cattrs.gen import make_dict_structure_fn

from .imetypes import InputMode
from .keyboard_consts import KeyCode

# US layout; the second entry is the shifted character. Space, tab and the like are
# absent on purpose, so they pass through to the host untouched.
KEYMAPS = {
    "KEY_GRAVE": ["`", "~"],
    "KEY_1": ["1", "!"],
    "KEY_2": ["2", "@"],
    "KEY_3": ["3", "#"],
    "KEY_4": ["4", "$"],
    "KEY_5": ["5", "%"],
    "KEY_6": ["6", "^"],
    "KEY_7": ["7", "&"],
    "KEY_8": ["8", "*"],
    "KEY_9": ["9", "("],
    "KEY_0": ["0", ")"],
    "KEY_MINUS": ["-", "_"],
    "KEY_EQUAL": ["=", "+"],
    "KEY_Q": ["q", "Q"],
    "KEY_W": ["w", "W"],
    "KEY_E": ["e", "E"],
    "KEY_R": ["r", "R"],
    "KEY_T": ["t", "T"],
    "KEY_Y": ["y", "Y"],
    "KEY_U": ["u", "U"],
    "KEY_I": ["i", "I"],
    "KEY_O": ["o", "O"],
    "KEY_P": ["p", "P"],
    "KEY_LEFTBRACE": ["[", "{"],
    "KEY_RIGHTBRACE": ["]", "}"],
    "KEY_BACKSLASH": ["\\", "|"],
    "KEY_A": ["a", "A"],
    "KEY_S": ["s", "S"],
    "KEY_D": ["d", "D"],
    "KEY_F": ["f", "F"],
    "KEY_G": ["g", "G"],
    "KEY_H": ["h", "H"],
    "KEY_J": ["j", "J"],
    "KEY_K": ["k", "K"],
    "KEY_L": ["l", "L"],
    "KEY_SEMICOLON": [";", ":"],
    "KEY_APOSTROPHE": ["'", '"'],
    "KEY_Z": ["z", "Z"],
    "KEY_X": ["x", "X"],
    "KEY_C": ["c", "C"],
    "KEY_V": ["v", "V"],
    "KEY_B": ["b", "B"],
    "KEY_N": ["n", "N"],
    "KEY_M": ["m", "M"],
    "KEY_COMMA": [",", "<"],
    "KEY_DOT": [".", ">"],
    "KEY_SLASH": ["/", "?"],
    "KEY_KP0": ["0", "0"],
    "KEY_KP1": ["1", "1"],
    "KEY_KP2": ["2", "2"],
    "KEY_KP3": ["3", "3"],
    "KEY_KP4": ["4", "4"],
    "KEY_KP5": ["5", "5"],
    "KEY_KP6": ["6", "6"],
    "KEY_KP7": ["7", "7"],
    "KEY_KP8": ["8", "8"],
    "KEY_KP9": ["9", "9"],
}

TOGGLE_KEYS = ["KEY_ZENKAKUHANKAKU", "KEY_KATAKANAHIRAGANA"]

DEFAULT_REMOTE_HOST = "::1"
DEFAULT_REMOTE_PORT = 50051


@enum.unique
class BackendKind(enum.Enum):
    LOCAL = "local"
    REMOTE = "remote"
    NATIVE = "native"


settings_converter = cattrs.Converter()
settings_converter.register_unstructure_hook(KeyCode, operator.attrgetter("name"))
settings_converter.register_structure_hook(KeyCode, lambda v, _: KeyCode[v])
settings_converter.register_unstructure_hook(pathlib.Path, str)
settings_converter.register_structure_hook(pathlib.Path, lambda v, _: pathlib.Path(v))


@dataclasses.dataclass(kw_only=True)
class Settings:
    _path: pathlib.Path
    keymaps: dict[KeyCode, list[str]]
    toggle_keys: list[KeyCode]
    initial_mode: InputMode
    backend: BackendKind
    remote_host: str = DEFAULT_REMOTE_HOST
    remote_port: int = DEFAULT_REMOTE_PORT
    native_library: typing.Optional[pathlib.Path] = None
    native_resources: typing.Optional[pathlib.Path] = None
    # seconds; None waits on the backend forever
    backend_timeout: typing.Optional[float] = None
    # reading (hiragana) -> words offered ahead of the plain kana candidates
    dictionary: dict[str, list[str]] = dataclasses.field(default_factory=dict)
    show_candidates: bool = True

    def save(self, dest: typing.Optional[pathlib.Path] = None):
        if dest is None:
            dest = self._path
        raw = settings_converter.unstructure(self)
        del raw["_path"]
        with dest.open("w") as f:
            json.dump(raw, f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, src: pathlib.Path):
        with src.open() as f:
            raw = json.load(f)
        raw["_path"] = src
        return settings_converter.structure(raw, cls)

    @classmethod
    def default(cls, path: pathlib.Path, **overrides):
        raw = {
            "_path": path,
            "keymaps": KEYMAPS,
            "toggle_keys": TOGGLE_KEYS,
            "initial_mode": "kana",
            "backend": "local",
            "show_candidates": True,
        }
        raw.update(overrides)
        return settings_converter.structure(raw, cls)

    @classmethod
    def for_test(cls, **overrides):
        return cls.default(pathlib.Path("test.settings.json"), **overrides)


settings_converter.register_structure_hook(Settings, make_dict_structure_fn(Settings, settings_converter))
