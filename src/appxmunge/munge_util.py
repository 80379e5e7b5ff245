import dataclasses
from typing import (
    Dict,
    List,
    Iterable,
    Mapping,
    Optional,
    Tuple,
    Callable,
)

from appxmunge.changes import Change, Munge, ConfigMunge
from appxmunge.exceptions import AppxMungeManifestError
from appxmunge.substitution import (
    Substitution,
    SubstitutionImpl,
    NULL_SUBSTITUTION,
)

_MutableConfigMunge = Dict[str, Dict[str, List[Change]]]


def _add_change(
    files: _MutableConfigMunge,
    target: str,
    parent: str,
    change: Change,
) -> None:
    entries = files.setdefault(target, {}).setdefault(parent, [])
    for idx, existing in enumerate(entries):
        if existing.xml == change.xml:
            entries[idx] = dataclasses.replace(
                existing, count=existing.count + change.count
            )
            return
    entries.append(change)


def _freeze(files: _MutableConfigMunge) -> ConfigMunge:
    return ConfigMunge(
        {
            target: Munge.from_parents(parents)
            for target, parents in files.items()
            if any(parents.values())
        }
    )


def _thaw(config_munge: ConfigMunge) -> _MutableConfigMunge:
    return {
        target: {
            parent: list(changes) for parent, changes in munge.parents.items()
        }
        for target, munge in config_munge.files.items()
    }


class MungeGenerator:
    """Turns a flat list of changes into a `ConfigMunge`

    Each fragment is stripped of its `target`/`parent` (they become the keys of
    the munge) and of its version/device qualifiers.  Identical fragments below
    the same selector are merged by adding up their counts.
    """

    def substitution_for(
        self,
        plugin_id: str,
        variables: Optional[Mapping[str, str]],
    ) -> Substitution:
        if variables is None:
            return NULL_SUBSTITUTION
        return SubstitutionImpl(variables).with_extra_substitutions(
            PLUGIN_ID=plugin_id
        )

    def generate_plugin_config_munge(
        self,
        changes: Iterable[Change],
        plugin_id: str,
        variables: Optional[Mapping[str, str]] = None,
    ) -> ConfigMunge:
        substitution = self.substitution_for(plugin_id, variables)
        files: _MutableConfigMunge = {}
        for idx, change in enumerate(changes):
            if change.target is None or change.parent is None:
                raise AppxMungeManifestError(
                    f"Change number {idx + 1} of {plugin_id} does not define both a target file and a parent"
                    f" selector ({change.xml})"
                )
            xml = substitution.substitute(
                change.xml.strip(),
                f'the change to "{change.parent}" in {change.target} from {plugin_id}',
            )
            entry = Change(
                xml,
                count=change.count,
                before=change.before,
                after=change.after,
            )
            _add_change(files, change.target, change.parent, entry)
        return _freeze(files)


def _combine(
    base: ConfigMunge,
    delta: ConfigMunge,
    update_count: Callable[[int, int], int],
) -> Tuple[ConfigMunge, ConfigMunge]:
    """Apply `delta` to the counts in `base`

    Returns the updated munge and the entries of `delta` whose presence
    changed (went from absent to present, or from present to absent).
    """
    files = _thaw(base)
    changed: _MutableConfigMunge = {}
    for target, munge in delta.files.items():
        for parent, changes in munge.parents.items():
            entries = files.setdefault(target, {}).setdefault(parent, [])
            for change in changes:
                idx = next(
                    (i for i, e in enumerate(entries) if e.xml == change.xml), None
                )
                old_count = entries[idx].count if idx is not None else 0
                new_count = update_count(old_count, change.count)
                if (old_count > 0) != (new_count > 0):
                    _add_change(changed, target, parent, change)
                if idx is None:
                    if new_count > 0:
                        entries.append(dataclasses.replace(change, count=new_count))
                elif new_count > 0:
                    entries[idx] = dataclasses.replace(entries[idx], count=new_count)
                else:
                    del entries[idx]
    return _freeze(files), _freeze(changed)


def increment_munge(
    base: ConfigMunge,
    delta: ConfigMunge,
) -> Tuple[ConfigMunge, ConfigMunge]:
    """Add the counts of `delta` to `base`

    :return: A tuple of the new accumulated munge and the part of `delta`
      that was not present in `base` before (and therefore must be added to
      the files).
    """
    return _combine(base, delta, lambda old, new: old + new)


def decrement_munge(
    base: ConfigMunge,
    delta: ConfigMunge,
) -> Tuple[ConfigMunge, ConfigMunge]:
    """Subtract the counts of `delta` from `base`

    :return: A tuple of the new accumulated munge and the part of `delta`
      that is no longer requested by anyone (and therefore must be removed
      from the files).
    """
    return _combine(base, delta, lambda old, new: max(old - new, 0))
