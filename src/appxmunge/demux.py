import dataclasses
from typing import Iterable, List, Iterator

from appxmunge.changes import Change
from appxmunge.manifest_table import (
    VersionedManifestTable,
    MungerConfig,
    DEFAULT_MUNGER_CONFIG,
)
from appxmunge.util import _debug
from appxmunge.version_ranges import satisfies


def resolve_device_target(
    change: Change,
    manifest_table: VersionedManifestTable,
    default_device_target: str,
) -> str:
    device_target = change.device_target
    if device_target is None or device_target not in manifest_table:
        # Unknown device families fall back to the default
        return default_device_target
    return device_target


def _demux_change(change: Change, config: MungerConfig) -> Iterator[Change]:
    manifest_table = config.manifest_table
    device_target = resolve_device_target(
        change,
        manifest_table,
        config.default_device_target,
    )
    for version, manifests in manifest_table[device_target].items():
        if change.versions is not None and not satisfies(version, change.versions):
            continue
        if isinstance(manifests, str):
            manifests = (manifests,)
        for manifest in manifests:
            yield dataclasses.replace(change, target=manifest)


def demux_changes(
    changes: Iterable[Change],
    config: MungerConfig = DEFAULT_MUNGER_CONFIG,
) -> List[Change]:
    """Expand changes to the abstract manifest into changes to concrete manifests

    Changes to other files and changes without version or device qualifiers
    are passed through as-is.  The output keeps the input order; the
    expansions of one change follow the key order of the manifest table.
    """
    result = []
    for change in changes:
        if change.target != config.abstract_manifest or not change.is_qualified:
            result.append(change)
            continue
        expanded = list(_demux_change(change, config))
        _debug(
            f"Demultiplexed {change.xml} (versions: {change.versions},"
            f" device target: {change.device_target}) into"
            f" {', '.join(str(c.target) for c in expanded) or 'nothing'}"
        )
        result.extend(expanded)
    return result
