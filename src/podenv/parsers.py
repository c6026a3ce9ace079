import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import yaml

from .cli_config import get_config
from .dependency import DependencyRecord, macro_identifier, parse_version
from .error_handling import (
    DuplicateNameError,
    ErrorCategory,
    ParseError,
    get_error_handler,
    log_parsing_error,
)

PREAMBLE = """\
// To check if a library is compiled with CocoaPods you
// can use the `{prefix}` macro definition which is
// defined in the xcconfigs so it is available in
// headers also when they are imported in the client
// project."""

_COMMENT = re.compile(r"^\s*//\s?(.*?)\s*$")
_DEFINE = re.compile(r"^\s*#\s*define\s+(\S+)(?:\s+(.*?))?\s*$")
_INTEGER = re.compile(r"[0-9]+")

_AVAILABLE = "POD_AVAILABLE"
_COMPONENTS = ("MAJOR", "MINOR", "PATCH")

_LOCK_ENTRY = re.compile(r"^(\S+)\s+\(([^)]*)\)$")

ManifestSource = Union[str, Iterable[str]]


def _validate_file_path(file_path: str) -> Path:
    """
    Validate a manifest or lock file path against the configured limits.

    Args:
        file_path: The file path to validate

    Returns:
        Path: Validated and resolved path object

    Raises:
        ValueError: If path is missing, not a file, too large or of a
            disallowed type
    """
    if not file_path or not isinstance(file_path, str):
        raise ValueError("File path must be a non-empty string")

    try:
        path = Path(file_path).resolve()
    except (OSError, ValueError) as e:
        raise ValueError(f"Invalid file path: {e}")

    if not path.exists():
        raise ValueError(f"File does not exist: {path}")

    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    config = get_config()
    allowed_extensions = {ext.lower() for ext in config.security.allowed_file_extensions}
    if path.suffix.lower() not in allowed_extensions:
        raise ValueError(f"File type not allowed: {path.suffix or path.name}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise ValueError(f"Cannot access file: {e}")
    max_file_size = config.security.max_file_size_bytes
    if file_size > max_file_size:
        raise ValueError(f"File too large: {file_size} bytes (max: {max_file_size})")

    return path


def read_lines(file_path: str) -> List[str]:
    """
    Read a validated file into lines, enforcing the configured line limit.

    Exceeding the limit raises ParseError; the file is never truncated.
    """
    validated_path = _validate_file_path(file_path)
    max_lines = get_config().security.max_lines_per_file

    lines = []
    try:
        with open(validated_path, encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                if line_num > max_lines:
                    get_error_handler().error(
                        ErrorCategory.FILESYSTEM,
                        f"File has too many lines (max: {max_lines})",
                        "parsers",
                        "read_lines",
                        details={"file_path": validated_path.name},
                    )
                    raise ParseError(
                        f"File has too many lines (max: {max_lines})",
                        line_number=line_num,
                        source=str(file_path),
                    )
                lines.append(line.rstrip("\r\n"))
    except UnicodeDecodeError:
        raise ValueError("File contains invalid UTF-8 characters")
    except PermissionError:
        raise ValueError("Permission denied reading file")
    except OSError as e:
        raise ValueError(f"Error reading file: {e}")

    return lines


def _split_source(source: ManifestSource) -> List[str]:
    if isinstance(source, str):
        return source.splitlines()
    return [line.rstrip("\r\n") for line in source]


def _parse_failure(
    message: str,
    line_number: Optional[int],
    source: Optional[str],
    function: str,
) -> ParseError:
    log_parsing_error(
        message,
        module="parsers",
        function=function,
        line_number=line_number,
        file_path=source,
    )
    return ParseError(message, line_number=line_number, source=source)


def _duplicate_failure(
    name: str,
    message: str,
    line_number: Optional[int],
    source: Optional[str],
    function: str,
) -> DuplicateNameError:
    log_parsing_error(
        message,
        module="parsers",
        function=function,
        line_number=line_number,
        file_path=source,
    )
    return DuplicateNameError(name, message, line_number=line_number, source=source)


class _Block:
    """A presence marker and the version defines collected after it."""

    def __init__(self, name: str, identifier: str, line_number: int):
        self.name = name
        self.identifier = identifier
        self.line_number = line_number
        self.components: Dict[str, int] = {}

    def missing(self) -> List[str]:
        return [component for component in _COMPONENTS if component not in self.components]


class _ManifestReader:
    """Line-oriented state machine over the #define manifest form."""

    def __init__(self, source: Optional[str], macro_prefix: str):
        self.source = source
        self.prefix = f"{macro_prefix}_"
        self.records: List[DependencyRecord] = []
        self.names: Dict[str, int] = {}
        self.identifiers: Dict[str, str] = {}
        self.block: Optional[_Block] = None
        self.header: Optional[str] = None

    def fail(self, message: str, line_number: Optional[int]) -> ParseError:
        return _parse_failure(message, line_number, self.source, "parse_manifest")

    def read(self, lines: Sequence[str]) -> List[DependencyRecord]:
        for line_num, line in enumerate(lines, 1):
            self.feed(line, line_num)
        self.close_block()
        return self.records

    def feed(self, line: str, line_num: int) -> None:
        stripped = line.strip()

        if not stripped:
            self.header = None
            return

        comment = _COMMENT.match(line)
        if comment:
            self.header = comment.group(1)
            return

        define = _DEFINE.match(line)
        if not define:
            raise self.fail(f"Unrecognised line: {stripped[:100]}", line_num)

        macro, value = define.group(1), define.group(2)
        if not macro.startswith(self.prefix):
            raise self.fail(f"Unrecognised macro: {macro}", line_num)
        body = macro[len(self.prefix):]

        if body.startswith(f"{_AVAILABLE}_") or body == _AVAILABLE:
            self.open_block(body[len(_AVAILABLE) + 1:], value, line_num)
        else:
            for component in _COMPONENTS:
                marker = f"VERSION_{component}"
                if body.startswith(f"{marker}_") or body == marker:
                    self.set_component(component, body[len(marker) + 1:], value, line_num)
                    break
            else:
                raise self.fail(f"Unrecognised macro: {macro}", line_num)

        self.header = None

    def open_block(self, identifier: str, value: Optional[str], line_num: int) -> None:
        if not identifier:
            raise self.fail("Presence marker is missing a dependency name", line_num)
        if value:
            raise self.fail(
                f"Presence marker for {identifier} must not carry a value", line_num
            )

        self.close_block()

        name = self.header if self.header is not None else identifier
        if macro_identifier(name) != identifier:
            raise self.fail(
                f"Header names {name!r} but declarations are keyed by {identifier}",
                line_num,
            )

        if name in self.names:
            raise _duplicate_failure(
                name,
                f"Duplicate dependency name: {name} (first declared on line {self.names[name]})",
                line_num,
                self.source,
                "parse_manifest",
            )
        if identifier in self.identifiers:
            other = self.identifiers[identifier]
            raise _duplicate_failure(
                name,
                f"Dependencies {other!r} and {name!r} share macro identifier {identifier}",
                line_num,
                self.source,
                "parse_manifest",
            )

        self.names[name] = line_num
        self.identifiers[identifier] = name
        self.block = _Block(name, identifier, line_num)

    def set_component(
        self, component: str, identifier: str, value: Optional[str], line_num: int
    ) -> None:
        if not identifier:
            raise self.fail(f"{component} version is missing a dependency name", line_num)
        if self.block is None:
            raise self.fail(
                f"{component} version for {identifier} declared without a presence marker",
                line_num,
            )
        if identifier != self.block.identifier:
            raise self.fail(
                f"{component} version for {identifier} inside the block for {self.block.name}",
                line_num,
            )
        if component in self.block.components:
            raise self.fail(
                f"Duplicate {component} version for {self.block.name}", line_num
            )
        if value is None or not _INTEGER.fullmatch(value):
            raise self.fail(
                f"{component} version for {self.block.name} is not a non-negative integer: {value!r}",
                line_num,
            )
        self.block.components[component] = int(value)

    def close_block(self) -> None:
        block, self.block = self.block, None
        if block is None:
            return

        missing = block.missing()
        if missing:
            raise self.fail(
                f"Incomplete declaration block for {block.name}: missing {', '.join(missing)}",
                block.line_number,
            )

        try:
            record = DependencyRecord(
                name=block.name,
                version=tuple(block.components[component] for component in _COMPONENTS),
            )
        except ValueError as e:
            raise self.fail(str(e), block.line_number)
        self.records.append(record)


def parse_manifest(
    source: ManifestSource,
    source_name: Optional[str] = None,
    macro_prefix: Optional[str] = None,
) -> List[DependencyRecord]:
    """
    Parse the #define manifest form into dependency records.

    Each record is a block of four macros keyed by the dependency's macro
    identifier: a presence marker followed by MAJOR, MINOR and PATCH
    version defines. A "// Name" comment directly above the presence marker
    carries the real name, which may contain characters ("/", "-", "+")
    that the identifier cannot.

    Args:
        source: Manifest text or an iterable of lines
        source_name: Label used in error messages (usually the file path)
        macro_prefix: Macro prefix, defaults to manifest.macro_prefix

    Returns:
        List[DependencyRecord]: Records in declaration order

    Raises:
        ParseError: If a declaration is malformed or a block is incomplete
        DuplicateNameError: If a name (or its macro identifier) repeats
    """
    prefix = macro_prefix or get_config().manifest.macro_prefix
    return _ManifestReader(source_name, prefix).read(_split_source(source))


def render_manifest(
    records: Iterable[DependencyRecord],
    macro_prefix: Optional[str] = None,
    include_preamble: Optional[bool] = None,
) -> str:
    """Render records back into the #define manifest form, in the given order."""
    config = get_config()
    prefix = macro_prefix or config.manifest.macro_prefix
    if include_preamble is None:
        include_preamble = config.manifest.include_preamble

    lines: List[str] = []
    if include_preamble:
        lines.extend(PREAMBLE.format(prefix=prefix).splitlines())
        lines.append("")

    for record in records:
        if lines:
            lines.append("")
        identifier = record.identifier
        lines.append(f"// {record.name}")
        lines.append(f"#define {prefix}_{_AVAILABLE}_{identifier}")
        for component, value in zip(_COMPONENTS, record.version):
            lines.append(f"#define {prefix}_VERSION_{component}_{identifier} {value}")

    return "\n".join(lines) + "\n" if lines else ""


def _lock_entry_name(entry: Any) -> Any:
    # "Name (x.y.z)" or {"Name (x.y.z)": [constraints]}
    if isinstance(entry, dict) and len(entry) == 1:
        return next(iter(entry))
    return entry


def parse_podfile_lock(
    source: ManifestSource, source_name: Optional[str] = None
) -> List[DependencyRecord]:
    """
    Read the installed pods from the PODS section of a Podfile.lock.

    Podfile.lock is YAML. Each PODS entry is either "Name (x.y.z)" or a
    one-key mapping from "Name (x.y.z)" to that pod's dependency
    constraints; the constraints are not installed pods and are skipped.

    Raises:
        ParseError: If the file is not valid YAML, the PODS section is
            missing or an entry is malformed
        DuplicateNameError: If a pod is listed twice
    """
    text = source if isinstance(source, str) else "\n".join(_split_source(source))

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        raise _parse_failure(
            f"Invalid YAML in Podfile.lock: {e}",
            mark.line + 1 if mark is not None else None,
            source_name,
            "parse_podfile_lock",
        )

    pods = data.get("PODS") if isinstance(data, dict) else None
    if pods is None:
        raise _parse_failure(
            "Podfile.lock has no PODS section", None, source_name, "parse_podfile_lock"
        )
    if not isinstance(pods, list):
        raise _parse_failure(
            "Podfile.lock PODS section must be a list", None, source_name, "parse_podfile_lock"
        )

    records: List[DependencyRecord] = []
    seen: Dict[str, int] = {}

    for index, entry in enumerate(pods, 1):
        label = _lock_entry_name(entry)
        match = _LOCK_ENTRY.match(label.strip()) if isinstance(label, str) else None
        if not match:
            raise _parse_failure(
                f"Pod {str(label)[:100]} has no installed version",
                None,
                source_name,
                "parse_podfile_lock",
            )

        name, version = match.group(1), match.group(2)
        if name in seen:
            raise _duplicate_failure(
                name,
                f"Duplicate pod: {name} (entries {seen[name]} and {index})",
                None,
                source_name,
                "parse_podfile_lock",
            )

        try:
            record = DependencyRecord(name=name, version=parse_version(version))
        except ValueError as e:
            raise _parse_failure(str(e), None, source_name, "parse_podfile_lock")

        seen[name] = index
        records.append(record)

    return records


def records_from_dict(
    data: Dict[str, Any], source_name: Optional[str] = None
) -> List[DependencyRecord]:
    """
    Build records from the JSON form produced by Registry.to_dict().

    Each entry needs a "name" and either a "version" string or the three
    "major"/"minor"/"patch" integers.

    Raises:
        ParseError: If the document or an entry is malformed
    """
    entries = data.get("dependencies") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise _parse_failure(
            "JSON manifest must contain a 'dependencies' list",
            None,
            source_name,
            "records_from_dict",
        )

    records = []
    for index, entry in enumerate(entries, 1):
        if not isinstance(entry, dict) or not entry.get("name"):
            raise _parse_failure(
                f"Dependency entry {index} is missing a name",
                None,
                source_name,
                "records_from_dict",
            )
        try:
            if all(key in entry for key in ("major", "minor", "patch")):
                version = (entry["major"], entry["minor"], entry["patch"])
            else:
                version = parse_version(str(entry.get("version", "")))
            records.append(DependencyRecord(name=entry["name"], version=version))
        except ValueError as e:
            raise _parse_failure(
                f"Dependency entry {index} ({entry['name']}): {e}",
                None,
                source_name,
                "records_from_dict",
            )

    return records


def detect_file_type(file_path: str) -> str:
    """
    Detect whether a file is a manifest header, a JSON manifest or a
    Podfile.lock.

    Raises:
        ValueError: If file type is not supported
    """
    filename = Path(file_path).name.lower()

    if filename == "podfile.lock" or filename.endswith(".lock"):
        return "podfile_lock"
    if filename.endswith(".json"):
        return "json"
    if filename.endswith(".h") or filename.endswith(".txt"):
        return "manifest"

    raise ValueError(f"Unsupported file type: {filename}")


def parse_dependency_file(file_path: str) -> List[DependencyRecord]:
    """Parse any supported file type into dependency records."""
    lines = read_lines(file_path)
    file_type = detect_file_type(file_path)

    if file_type == "podfile_lock":
        return parse_podfile_lock(lines, source_name=file_path)
    if file_type == "json":
        try:
            data = json.loads("\n".join(lines))
        except json.JSONDecodeError as e:
            raise _parse_failure(
                f"Invalid JSON manifest: {e}", e.lineno, file_path, "parse_dependency_file"
            )
        return records_from_dict(data, source_name=file_path)
    return parse_manifest(lines, source_name=file_path)
