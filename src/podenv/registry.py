"""
Immutable registry of installed dependencies.

A Registry is a frozen, ordered snapshot of dependency records with a
name index for presence and version queries. Registries are built by
loading a manifest, reading a Podfile.lock or merging other registries;
there are no mutators.
"""

from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .dependency import DependencyRecord, Version, parse_version
from .error_handling import (
    ConflictError,
    DuplicateNameError,
    NotFoundError,
    log_lookup_miss,
    log_merge_conflict,
)
from .parsers import (
    ManifestSource,
    parse_dependency_file,
    parse_manifest,
    parse_podfile_lock,
    records_from_dict,
    render_manifest,
)
from .structured_logging import log_lookup, log_manifest_loaded, log_merge


class Registry:
    """Ordered, name-indexed, immutable collection of DependencyRecords."""

    __slots__ = ("_records", "_index")

    def __init__(self, records: Iterable[DependencyRecord] = ()):
        """
        Build a registry from records in declaration order.

        Raises:
            DuplicateNameError: If two records share a name or a macro
                identifier
        """
        ordered: List[DependencyRecord] = []
        index: Dict[str, DependencyRecord] = {}
        identifiers: Dict[str, str] = {}

        for record in records:
            if not isinstance(record, DependencyRecord):
                raise TypeError(f"Expected DependencyRecord, got {type(record).__name__}")
            if record.name in index:
                raise DuplicateNameError(record.name)
            identifier = record.identifier
            if identifier in identifiers:
                raise DuplicateNameError(
                    record.name,
                    f"Dependencies {identifiers[identifier]!r} and {record.name!r} "
                    f"share macro identifier {identifier}",
                )
            identifiers[identifier] = record.name
            index[record.name] = record
            ordered.append(record)

        object.__setattr__(self, "_records", tuple(ordered))
        object.__setattr__(self, "_index", index)

    def __setattr__(self, key, value):
        raise AttributeError("Registry is immutable")

    def __reduce__(self):
        # copy and pickle rebuild through __init__ instead of setattr
        return (Registry, (self._records,))

    @classmethod
    def from_versions(cls, versions: Iterable[Tuple[str, Union[str, Version]]]) -> "Registry":
        """Build a registry from (name, version) pairs, e.g. ("YapDatabase", "2.6.5")."""
        return cls(
            DependencyRecord(name=name, version=parse_version(version))
            for name, version in versions
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Registry":
        return cls(records_from_dict(data))

    @property
    def records(self) -> Tuple[DependencyRecord, ...]:
        return self._records

    def names(self) -> List[str]:
        return [record.name for record in self._records]

    def get(self, name: str) -> Optional[DependencyRecord]:
        return self._index.get(name)

    def is_available(self, name: str) -> bool:
        found = name in self._index
        log_lookup(name, found)
        return found

    def version_of(self, name: str) -> Version:
        """
        Return the (major, minor, patch) version of a dependency.

        Raises:
            NotFoundError: If name is not in the registry
        """
        record = self._index.get(name)
        if record is None:
            error = NotFoundError(name)
            log_lookup_miss(name, exception=error)
            raise error
        log_lookup(name, True)
        return record.version

    def meets_minimum(self, name: str, minimum: Union[str, Version]) -> bool:
        """Whether name is present at a version >= minimum."""
        record = self._index.get(name)
        log_lookup(name, record is not None)
        if record is None:
            return False
        return record.version >= parse_version(minimum)

    def serialize(self, **kwargs) -> str:
        return serialize(self, **kwargs)

    def merge(self, other: "Registry") -> "Registry":
        return merge(self, other)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dependencies": [
                {
                    "name": record.name,
                    "version": record.version_string,
                    "major": record.major,
                    "minor": record.minor,
                    "patch": record.patch,
                }
                for record in self._records
            ]
        }

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[DependencyRecord]:
        return iter(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Registry):
            return NotImplemented
        return self._records == other._records

    def __hash__(self) -> int:
        return hash(self._records)

    def __repr__(self) -> str:
        body = ", ".join(f"{r.name}={r.version_string}" for r in self._records)
        return f"Registry({body})"


def load(
    source: ManifestSource,
    source_name: Optional[str] = None,
    macro_prefix: Optional[str] = None,
) -> Registry:
    """
    Parse manifest text (or lines) into a Registry.

    The result depends only on the input once the macro prefix is fixed.
    Without an explicit macro_prefix the configured manifest.macro_prefix
    is used, which a .podenv.json or .podenv.toml in the working directory,
    a user config file or PODENV_MACRO_PREFIX can change. Pass
    macro_prefix="COCOAPODS" to read a standard header regardless of config.

    Raises:
        ParseError: If a declaration is malformed or incomplete
        DuplicateNameError: If a name is declared twice
    """
    registry = Registry(parse_manifest(source, source_name=source_name, macro_prefix=macro_prefix))
    log_manifest_loaded(source_name, len(registry))
    return registry


def load_file(file_path: str) -> Registry:
    """Load a manifest header, JSON manifest or Podfile.lock from disk."""
    registry = Registry(parse_dependency_file(file_path))
    log_manifest_loaded(file_path, len(registry))
    return registry


def load_podfile_lock(source: ManifestSource, source_name: Optional[str] = None) -> Registry:
    registry = Registry(parse_podfile_lock(source, source_name=source_name))
    log_manifest_loaded(source_name, len(registry))
    return registry


def is_available(registry: Registry, name: str) -> bool:
    return registry.is_available(name)


def version_of(registry: Registry, name: str) -> Version:
    return registry.version_of(name)


def meets_minimum(registry: Registry, name: str, minimum: Union[str, Version]) -> bool:
    return registry.meets_minimum(name, minimum)


def serialize(
    registry: Registry,
    macro_prefix: Optional[str] = None,
    include_preamble: Optional[bool] = None,
) -> str:
    """
    Render a registry as manifest text, one block per record in stored order.

    Unset macro_prefix and include_preamble come from the manifest config
    section, like the prefix used by load().
    """
    return render_manifest(
        registry.records, macro_prefix=macro_prefix, include_preamble=include_preamble
    )


def merge(left: Registry, right: Registry) -> Registry:
    """
    Union two registries.

    Records of left keep their order, followed by the records of right that
    left does not already hold. A name present in both with the same
    version is kept once.

    Raises:
        ConflictError: If a name is present in both with different versions
        DuplicateNameError: If two different names collide on their macro
            identifier
    """
    combined = list(left.records)
    for record in right:
        existing = left.get(record.name)
        if existing is None:
            combined.append(record)
        elif existing.version != record.version:
            error = ConflictError(record.name, existing.version, record.version)
            log_merge_conflict(record.name, existing.version, record.version, exception=error)
            raise error

    merged = Registry(combined)
    log_merge(2, len(merged))
    return merged


def merge_all(registries: Iterable[Registry]) -> Registry:
    """Fold merge() over any number of registries, left to right."""
    merged = Registry()
    count = 0
    for registry in registries:
        merged = merge(merged, registry)
        count += 1
    log_merge(count, len(merged))
    return merged


__all__ = [
    "Registry",
    "load",
    "load_file",
    "load_podfile_lock",
    "is_available",
    "version_of",
    "meets_minimum",
    "serialize",
    "merge",
    "merge_all",
]
