import json
import os
from typing import Optional, List, FrozenSet, Mapping, Iterable, Dict

from appxmunge.changes import ConfigMunge
from appxmunge.exceptions import AppxMungeLedgerError

LEDGER_FILENAME = "appxmunge.json"
LEDGER_FORMAT_VERSION = 1


class PreservedFragments:
    """Fragments that were already in a manifest before any plugin requested them

    They belong to the manifest rather than to a plugin, so removing the
    plugin changes that requested them must leave them in place.  Fragments
    are keyed by file, selector and the exact XML handed to the applier.
    """

    __slots__ = ("_fragments",)

    def __init__(
        self,
        fragments: Optional[Mapping[str, Mapping[str, Iterable[str]]]] = None,
    ) -> None:
        self._fragments: Dict[str, Dict[str, List[str]]] = {
            file: {selector: list(xmls) for selector, xmls in parents.items()}
            for file, parents in (fragments or {}).items()
        }

    def is_preserved(self, file: str, selector: str, xml: str) -> bool:
        return xml in self._fragments.get(file, {}).get(selector, ())

    def add(self, file: str, selector: str, xml: str) -> None:
        entries = self._fragments.setdefault(file, {}).setdefault(selector, [])
        if xml not in entries:
            entries.append(xml)

    def discard(self, file: str, selector: str, xml: str) -> bool:
        parents = self._fragments.get(file)
        if parents is None or xml not in parents.get(selector, ()):
            return False
        parents[selector].remove(xml)
        if not parents[selector]:
            del parents[selector]
        if not parents:
            del self._fragments[file]
        return True

    def is_empty(self) -> bool:
        return not self._fragments

    def to_dict(self) -> Dict[str, Dict[str, List[str]]]:
        return {
            file: {selector: list(xmls) for selector, xmls in parents.items()}
            for file, parents in self._fragments.items()
        }


class MungeLedger:
    """Reference counts of the fragments applied to a project's manifests

    The ledger records how many installed plugins requested each fragment,
    so a fragment is only physically removed when the last plugin requesting
    it is uninstalled.  It also carries the `PreservedFragments` of the
    project, which are never removed.
    """

    __slots__ = ("path", "config_munge", "preserved", "_installed_plugins")

    def __init__(
        self,
        path: Optional[str],
        config_munge: Optional[ConfigMunge] = None,
        installed_plugins: Optional[List[str]] = None,
        preserved: Optional[PreservedFragments] = None,
    ) -> None:
        self.path = path
        self.config_munge = config_munge if config_munge is not None else ConfigMunge()
        self.preserved = preserved if preserved is not None else PreservedFragments()
        self._installed_plugins = (
            list(installed_plugins) if installed_plugins is not None else []
        )

    @classmethod
    def in_memory(cls) -> "MungeLedger":
        return cls(None)

    @classmethod
    def for_project(cls, project_dir: str) -> "MungeLedger":
        return cls.load(os.path.join(project_dir, LEDGER_FILENAME))

    @classmethod
    def load(cls, path: str) -> "MungeLedger":
        if not os.path.exists(path):
            return cls(path)
        try:
            with open(path, "rt", encoding="utf-8") as fd:
                data = json.load(fd)
        except json.JSONDecodeError as e:
            raise AppxMungeLedgerError(
                f"The munge ledger {path} is not valid JSON: {e}"
            ) from e
        version = data.get("version")
        if version != LEDGER_FORMAT_VERSION:
            raise AppxMungeLedgerError(
                f"Unsupported format version {version!r} in the munge ledger {path}"
                f" (expected {LEDGER_FORMAT_VERSION})"
            )
        return cls(
            path,
            ConfigMunge.from_dict(data.get("config_munge", {})),
            data.get("installed_plugins", []),
            PreservedFragments(data.get("preserved", {})),
        )

    @property
    def installed_plugins(self) -> FrozenSet[str]:
        return frozenset(self._installed_plugins)

    def is_installed(self, plugin_id: str) -> bool:
        return plugin_id in self._installed_plugins

    def record_installed(self, plugin_id: str) -> None:
        if plugin_id not in self._installed_plugins:
            self._installed_plugins.append(plugin_id)

    def record_removed(self, plugin_id: str) -> None:
        if plugin_id in self._installed_plugins:
            self._installed_plugins.remove(plugin_id)

    def save(self) -> None:
        path = self.path
        if path is None:
            return
        data = {
            "version": LEDGER_FORMAT_VERSION,
            "installed_plugins": self._installed_plugins,
            "config_munge": self.config_munge.to_dict(),
            "preserved": self.preserved.to_dict(),
        }
        tmp_path = f"{path}.new"
        with open(tmp_path, "wt", encoding="utf-8") as fd:
            json.dump(data, fd, indent=2)
            fd.write("\n")
        os.replace(tmp_path, path)
