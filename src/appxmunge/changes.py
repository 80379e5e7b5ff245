import dataclasses
import re
from typing import (
    Optional,
    Mapping,
    Tuple,
    Iterable,
    Dict,
    Any,
)

CAPABILITY_NAME_RE = re.compile(r'Name="(\w+)"', re.IGNORECASE)


@dataclasses.dataclass(slots=True, frozen=True)
class Change:
    """A single declarative edit: insert (or remove) `xml` below `parent` in `target`

    Changes are values. Every transformation produces a new `Change` (see
    `dataclasses.replace`) and leaves the original untouched.

    :param xml: The XML fragment (a single element) to insert or remove
    :param target: The manifest file the change applies to. Entries inside a
      `Munge` do not need it, since the munge is already scoped to one file.
    :param parent: Selector of the element the fragment is inserted under.
      Like `target`, it is implied by the position inside a `Munge`.
    :param count: How many times the fragment has been requested
    :param before: `;`-separated element names the fragment must precede
    :param after: `;`-separated element names the fragment must follow
    :param versions: A semver range restricting which manifest schema versions
      the change applies to
    :param device_target: The device family (`windows`, `phone` or `all`)
    """

    xml: str
    target: Optional[str] = None
    parent: Optional[str] = None
    count: int = 1
    before: Optional[str] = None
    after: Optional[str] = None
    versions: Optional[str] = None
    device_target: Optional[str] = None

    @property
    def is_qualified(self) -> bool:
        return self.versions is not None or self.device_target is not None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"xml": self.xml, "count": self.count}
        if self.before is not None:
            d["before"] = self.before
        if self.after is not None:
            d["after"] = self.after
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Change":
        return cls(
            xml=d["xml"],
            count=d.get("count", 1),
            before=d.get("before"),
            after=d.get("after"),
        )


def capability_name(change: Change) -> str:
    """Derive the capability name from a change's `Name="..."` attribute

    The name is recomputed on every call; earlier stages may have rewritten
    the XML (e.g., by adding a namespace prefix) and the name must still match.

    >>> capability_name(Change('<Capability Name="internetClient" />'))
    'internetClient'
    """
    m = CAPABILITY_NAME_RE.search(change.xml)
    if m is None:
        raise ValueError(
            f"The capability declaration {change.xml!r} has no Name attribute"
        )
    return m.group(1)


@dataclasses.dataclass(slots=True, frozen=True)
class Munge:
    """All changes for one file, grouped by the selector they apply to"""

    parents: Mapping[str, Tuple[Change, ...]] = dataclasses.field(
        default_factory=dict
    )

    @classmethod
    def from_parents(cls, parents: Mapping[str, Iterable[Change]]) -> "Munge":
        return cls({selector: tuple(c) for selector, c in parents.items()})

    def changes_for(self, selector: str) -> Tuple[Change, ...]:
        return self.parents.get(selector, ())

    def with_parent(self, selector: str, changes: Iterable[Change]) -> "Munge":
        parents = dict(self.parents)
        parents[selector] = tuple(changes)
        return Munge(parents)

    def is_empty(self) -> bool:
        return not any(self.parents.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parents": {
                selector: [c.to_dict() for c in changes]
                for selector, changes in self.parents.items()
            }
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Munge":
        return cls.from_parents(
            {
                selector: [Change.from_dict(c) for c in changes]
                for selector, changes in d.get("parents", {}).items()
            }
        )


@dataclasses.dataclass(slots=True, frozen=True)
class ConfigMunge:
    """Munges keyed by the manifest file they apply to"""

    files: Mapping[str, Munge] = dataclasses.field(default_factory=dict)

    def munge_for(self, file: str) -> Munge:
        return self.files.get(file, Munge())

    def is_empty(self) -> bool:
        return all(m.is_empty() for m in self.files.values())

    def to_dict(self) -> Dict[str, Any]:
        return {"files": {f: m.to_dict() for f, m in self.files.items()}}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ConfigMunge":
        return cls({f: Munge.from_dict(m) for f, m in d.get("files", {}).items()})


@dataclasses.dataclass(slots=True, frozen=True)
class PluginChanges:
    plugin_id: str
    changes: Tuple[Change, ...]

