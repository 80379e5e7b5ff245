from typing import Protocol, Iterable, Mapping, Optional, List

from appxmunge.capabilities import (
    normalize_capabilities,
    prefix_capability_changes,
    generate_prefixed_capabilities,
)
from appxmunge.changes import Change, Munge, ConfigMunge
from appxmunge.demux import demux_changes
from appxmunge.manifest_table import (
    MungerConfig,
    PrefixPolicy,
    DEFAULT_MUNGER_CONFIG,
)
from appxmunge.util import _debug


class FileMungeApplier(Protocol):
    def apply_file_munge(
        self, file: str, munge: Munge, remove: bool = False
    ) -> None: ...


class BaseMungeGenerator(Protocol):
    def generate_plugin_config_munge(
        self,
        changes: Iterable[Change],
        plugin_id: str,
        variables: Optional[Mapping[str, str]] = None,
    ) -> ConfigMunge: ...


class PlatformMunger:
    """Windows specific munging on top of a base applier and munge generator

    Changes to the abstract `package.appxmanifest` are demultiplexed into the
    concrete manifests based on their `versions` and `device_target`.  When
    applying a munge, the capability list is normalized (duplicates removed
    and sorted) and capabilities are mirrored into the "uap" namespace of
    the Windows 10 manifest according to the configured `PrefixPolicy`.

    Both entry points have the same signature as the corresponding base
    collaborator, so a `PlatformMunger` can be used wherever one of those
    is expected.
    """

    def __init__(
        self,
        applier: FileMungeApplier,
        generator: BaseMungeGenerator,
        config: MungerConfig = DEFAULT_MUNGER_CONFIG,
    ) -> None:
        self._applier = applier
        self._generator = generator
        self._config = config

    @property
    def config(self) -> MungerConfig:
        return self._config

    def _prefixed_caps(
        self, changes: Iterable[Change], policy: PrefixPolicy
    ) -> List[Change]:
        config = self._config
        return prefix_capability_changes(
            changes,
            policy,
            caps_needing_prefix=config.caps_needing_prefix,
            prefix=config.prefix,
        )

    def _normalized_munge(self, file: str, munge: Munge, remove: bool) -> Munge:
        config = self._config
        selector = config.capabilities_selector
        if selector not in munge.parents:
            return munge
        capabilities: Iterable[Change] = munge.changes_for(selector)
        if (
            config.prefix_policy is PrefixPolicy.WHITELIST
            and file == config.unified_manifest
        ):
            capabilities = self._prefixed_caps(capabilities, PrefixPolicy.WHITELIST)
        if not remove:
            capabilities = normalize_capabilities(capabilities)
        return munge.with_parent(selector, capabilities)

    def _apply_prefixed_munge(self, file: str, munge: Munge, remove: bool) -> None:
        config = self._config
        prefixed = generate_prefixed_capabilities(
            munge,
            PrefixPolicy.ALL,
            caps_needing_prefix=config.caps_needing_prefix,
            prefix=config.prefix,
        )
        if not remove:
            prefixed = Munge.from_parents(
                {
                    selector: normalize_capabilities(changes)
                    for selector, changes in prefixed.parents.items()
                }
            )
        _debug(
            f"{'Removing' if remove else 'Adding'} {config.prefix}-prefixed capabilities"
            f" {'from' if remove else 'to'} {file}"
        )
        # Applying an empty munge is a no-op in the applier
        self._applier.apply_file_munge(file, prefixed, remove)

    def apply_file_munge(self, file: str, munge: Munge, remove: bool = False) -> None:
        """Apply (or remove) `munge` to `file` via the base applier

        :param file: The manifest file name
        :param munge: The changes to apply. It is not modified.
        :param remove: Whether the changes should be removed rather than added
        """
        config = self._config
        self._applier.apply_file_munge(
            file,
            self._normalized_munge(file, munge, remove),
            remove,
        )
        if (
            config.prefix_policy is PrefixPolicy.ALL
            and file == config.unified_manifest
        ):
            # The prefixed declarations are not tracked anywhere; they are
            # always derived from the munge being applied or removed.
            self._apply_prefixed_munge(file, munge, remove)

    def generate_plugin_config_munge(
        self,
        changes: Iterable[Change],
        plugin_id: str,
        variables: Optional[Mapping[str, str]] = None,
        edit_config_changes: Optional[Iterable[Change]] = None,
    ) -> ConfigMunge:
        all_changes = list(changes)
        if edit_config_changes:
            all_changes.extend(edit_config_changes)
        return self._generator.generate_plugin_config_munge(
            demux_changes(all_changes, self._config),
            plugin_id,
            variables,
        )
