from typing import Optional, Mapping, Iterable

from appxmunge.changes import Change, ConfigMunge, PluginChanges
from appxmunge.exceptions import AppxMungeRuntimeError
from appxmunge.munge_ledger import MungeLedger
from appxmunge.munge_util import increment_munge, decrement_munge
from appxmunge.platform_munger import PlatformMunger
from appxmunge.util import _info, _debug


class PluginChangeInstaller:
    """Adds and removes the manifest changes of plugins to a project

    Nothing is rolled back on failure: files written before the error keep
    their changes, while the ledger is left as it was.
    """

    def __init__(self, munger: PlatformMunger, ledger: MungeLedger) -> None:
        self.munger = munger
        self.ledger = ledger

    def _apply(self, config_munge: ConfigMunge, remove: bool) -> None:
        for file in sorted(config_munge.files):
            munge = config_munge.files[file]
            if munge.is_empty():
                continue
            _info(f"{'Removing changes from' if remove else 'Adding changes to'} {file}")
            self.munger.apply_file_munge(file, munge, remove=remove)

    def add_plugin_changes(
        self,
        plugin: PluginChanges,
        variables: Optional[Mapping[str, str]] = None,
        edit_config_changes: Optional[Iterable[Change]] = None,
    ) -> ConfigMunge:
        """Install the changes of `plugin`

        :return: The part of the plugin's munge that was actually applied
          (fragments already requested by other plugins are only counted)
        """
        plugin_id = plugin.plugin_id
        if self.ledger.is_installed(plugin_id):
            raise AppxMungeRuntimeError(
                f"The plugin {plugin_id} is already installed. Uninstall it first."
            )
        plugin_munge = self.munger.generate_plugin_config_munge(
            plugin.changes,
            plugin_id,
            variables,
            edit_config_changes,
        )
        new_global, to_add = increment_munge(self.ledger.config_munge, plugin_munge)
        self._apply(to_add, remove=False)
        self.ledger.config_munge = new_global
        self.ledger.record_installed(plugin_id)
        self.ledger.save()
        _debug(f"Recorded {plugin_id} as installed")
        return to_add

    def remove_plugin_changes(
        self,
        plugin: PluginChanges,
        variables: Optional[Mapping[str, str]] = None,
        edit_config_changes: Optional[Iterable[Change]] = None,
    ) -> ConfigMunge:
        """Uninstall the changes of `plugin`

        The munge is regenerated from the same declaration (and variables) the
        plugin was installed with.

        :return: The part of the plugin's munge that was actually removed
          (fragments still requested by other plugins are kept)
        """
        plugin_id = plugin.plugin_id
        if not self.ledger.is_installed(plugin_id):
            raise AppxMungeRuntimeError(f"The plugin {plugin_id} is not installed.")
        plugin_munge = self.munger.generate_plugin_config_munge(
            plugin.changes,
            plugin_id,
            variables,
            edit_config_changes,
        )
        new_global, to_remove = decrement_munge(
            self.ledger.config_munge, plugin_munge
        )
        self._apply(to_remove, remove=True)
        self.ledger.config_munge = new_global
        self.ledger.record_removed(plugin_id)
        self.ledger.save()
        _debug(f"Recorded {plugin_id} as removed")
        return to_remove
