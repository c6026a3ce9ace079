import re
from dataclasses import dataclass
from typing import Tuple, Union

Version = Tuple[int, int, int]

_NON_WORD = re.compile(r"[^A-Za-z0-9_]")
_VERSION_SUFFIX = re.compile(r"[-+].*$")
_DIGITS = re.compile(r"[0-9]+")


def macro_identifier(name: str) -> str:
    """Map a dependency name onto the identifier used in its macros."""
    return _NON_WORD.sub("_", name)


def parse_version(value: Union[str, Version]) -> Version:
    """
    Coerce "1.9.2" (or an existing tuple) into a (major, minor, patch) triple.

    Missing minor/patch components default to 0 and any pre-release or
    build suffix ("-beta.1", "+build") is dropped.

    Raises:
        ValueError: If a component is not a non-negative integer
    """
    if isinstance(value, tuple):
        return _check_version(value)

    text = _VERSION_SUFFIX.sub("", str(value).strip())
    parts = text.split(".")
    if not text or len(parts) > 3:
        raise ValueError(f"Invalid version: {value!r}")

    components = []
    for part in parts:
        if not _DIGITS.fullmatch(part):
            raise ValueError(f"Invalid version component {part!r} in {value!r}")
        components.append(int(part))
    while len(components) < 3:
        components.append(0)

    return (components[0], components[1], components[2])


def format_version(version: Version) -> str:
    return ".".join(str(component) for component in version)


def _check_version(version: tuple) -> Version:
    if len(version) != 3:
        raise ValueError(f"Version must have three components: {version!r}")
    for component in version:
        # bool is an int subclass
        if isinstance(component, bool) or not isinstance(component, int):
            raise ValueError(f"Version component must be an integer: {component!r}")
        if component < 0:
            raise ValueError(f"Version component must be non-negative: {component!r}")
    return (version[0], version[1], version[2])


@dataclass(frozen=True)
class DependencyRecord:
    """One installed dependency unit and its semantic version."""

    name: str
    version: Version

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Dependency name must be a non-empty string")
        if any(char.isspace() for char in self.name):
            raise ValueError(f"Dependency name contains whitespace: {self.name!r}")
        if not isinstance(self.version, (tuple, list)):
            raise ValueError(f"Version must be a (major, minor, patch) tuple: {self.version!r}")
        object.__setattr__(self, "version", _check_version(tuple(self.version)))

    @property
    def major(self) -> int:
        return self.version[0]

    @property
    def minor(self) -> int:
        return self.version[1]

    @property
    def patch(self) -> int:
        return self.version[2]

    @property
    def identifier(self) -> str:
        return macro_identifier(self.name)

    @property
    def version_string(self) -> str:
        return format_version(self.version)
