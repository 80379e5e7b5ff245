import argparse
import dataclasses
import logging
import os
from typing import (
    Optional,
    Mapping,
    Sequence,
    Callable,
    Dict,
    TYPE_CHECKING,
    List,
)

from appxmunge.changes import Change, PluginChanges
from appxmunge.installer import PluginChangeInstaller
from appxmunge.manifest_parser.plugin_changes import parse_plugin_changes
from appxmunge.manifest_table import (
    DEFAULT_MUNGER_CONFIG,
    MungerConfig,
    PrefixPolicy,
)
from appxmunge.munge_ledger import MungeLedger, PreservedFragments
from appxmunge.munge_util import MungeGenerator
from appxmunge.platform_munger import PlatformMunger
from appxmunge.util import _error, change_log_level
from appxmunge.xml_manifest import XmlManifestApplier

if TYPE_CHECKING:
    from argparse import _SubParsersAction


CommandHandler = Callable[["CommandContext"], None]
ArgparserConfigurator = Callable[[argparse.ArgumentParser], None]


def add_arg(
    *name_or_flags: str,
    **kwargs,
) -> Callable[[argparse.ArgumentParser], None]:
    def _configurator(argparser: argparse.ArgumentParser) -> None:
        argparser.add_argument(
            *name_or_flags,
            **kwargs,
        )

    return _configurator


@dataclasses.dataclass(slots=True, frozen=True)
class CommandArg:
    parsed_args: argparse.Namespace


class CommandContext:
    def __init__(self, parsed_args: argparse.Namespace) -> None:
        self.parsed_args = parsed_args
        self._plugin_changes: Optional[PluginChanges] = None

    @property
    def project_dir(self) -> str:
        return getattr(self.parsed_args, "project_dir", None) or "."

    @property
    def munger_config(self) -> MungerConfig:
        policy = getattr(self.parsed_args, "prefix_policy", None)
        if policy is None:
            return DEFAULT_MUNGER_CONFIG
        return DEFAULT_MUNGER_CONFIG.with_prefix_policy(PrefixPolicy(policy))

    @property
    def variables(self) -> Mapping[str, str]:
        variables: Dict[str, str] = {}
        for raw in getattr(self.parsed_args, "variables", None) or []:
            name, sep, value = raw.partition("=")
            if not sep or not name:
                _error(f'Invalid --variable "{raw}": It must be of the form NAME=VALUE')
            variables[name] = value
        return variables

    def plugin_changes(self) -> PluginChanges:
        if self._plugin_changes is None:
            self._plugin_changes = parse_plugin_changes(self.parsed_args.plugin_file)
        return self._plugin_changes

    def edit_config_changes(self) -> Sequence[Change]:
        changes: List[Change] = []
        for path in getattr(self.parsed_args, "edit_config_files", None) or []:
            changes.extend(parse_plugin_changes(path, require_id=False).changes)
        return changes

    def platform_munger(
        self,
        preserved: Optional[PreservedFragments] = None,
    ) -> PlatformMunger:
        return PlatformMunger(
            XmlManifestApplier(self.project_dir, preserved),
            MungeGenerator(),
            self.munger_config,
        )

    def installer(self) -> PluginChangeInstaller:
        project_dir = self.project_dir
        if not os.path.isdir(project_dir):
            _error(f'The project directory "{project_dir}" does not exist')
        ledger = MungeLedger.for_project(project_dir)
        return PluginChangeInstaller(self.platform_munger(ledger.preserved), ledger)


class SubcommandBase:
    __slots__ = ("name", "help_description")

    def __init__(
        self,
        name: str,
        *,
        help_description: Optional[str] = None,
    ) -> None:
        self.name = name
        self.help_description = help_description

    def configure(self, argparser: argparse.ArgumentParser) -> None:
        # Does nothing by default
        pass

    def __call__(self, command_arg: CommandArg) -> None:
        raise NotImplementedError

    def add_subcommand_to_subparser(
        self,
        subparser: "_SubParsersAction",
    ) -> argparse.ArgumentParser:
        parser = subparser.add_parser(
            self.name,
            help=self.help_description,
            allow_abbrev=False,
        )
        self.configure(parser)
        return parser


class GenericSubCommand(SubcommandBase):
    __slots__ = ("_handler", "_configure_handler")

    def __init__(
        self,
        name: str,
        handler: CommandHandler,
        *,
        help_description: Optional[str] = None,
        configure_handler: Optional[ArgparserConfigurator] = None,
    ) -> None:
        super().__init__(name, help_description=help_description)
        self._handler = handler
        self._configure_handler = configure_handler

    def configure(self, argparser: argparse.ArgumentParser) -> None:
        handler = self._configure_handler
        if handler is not None:
            handler(argparser)

    def __call__(self, command_arg: CommandArg) -> None:
        context = CommandContext(command_arg.parsed_args)
        if context.parsed_args.debug_mode or os.environ.get("APPXMUNGE_DEBUG", "") != "":
            change_log_level(logging.DEBUG)
        return self._handler(context)


class DispatcherCommand(SubcommandBase):
    """Dispatches to the subcommand named by the `dest` attribute of the parsed arguments"""

    __slots__ = ("_subcommands", "_dest", "_metavar")

    def __init__(
        self,
        name: str,
        dest: str,
        *,
        help_description: Optional[str] = None,
        metavar: str = "command",
    ) -> None:
        super().__init__(name, help_description=help_description)
        self._subcommands: Dict[str, SubcommandBase] = {}
        self._dest = dest
        self._metavar = metavar

    def register_subcommand(
        self,
        name: str,
        *,
        help_description: Optional[str] = None,
        argparser: Sequence[ArgparserConfigurator] = (),
    ) -> Callable[[CommandHandler], GenericSubCommand]:
        def _configure(parser: argparse.ArgumentParser) -> None:
            for configurator in argparser:
                configurator(parser)

        def _annotation_impl(func: CommandHandler) -> GenericSubCommand:
            if name in self._subcommands:
                raise ValueError(
                    f"Internal error: Multiple handlers for {name} on topic {self.name}"
                )
            subcommand = GenericSubCommand(
                name,
                func,
                help_description=help_description,
                configure_handler=_configure,
            )
            self._subcommands[name] = subcommand
            return subcommand

        return _annotation_impl

    def configure(self, argparser: argparse.ArgumentParser) -> None:
        subparser = argparser.add_subparsers(
            dest=self._dest,
            required=True,
            metavar=self._metavar,
        )
        for subcommand in self._subcommands.values():
            subcommand.add_subcommand_to_subparser(subparser)

    def __call__(self, command_arg: CommandArg) -> None:
        v = getattr(command_arg.parsed_args, self._dest, None)
        assert (
            v in self._subcommands
        ), f"Internal error: {v} was accepted as a command, but it was not registered?"
        self._subcommands[v](command_arg)


ROOT_COMMAND = DispatcherCommand(
    "root",
    dest="command",
    metavar="COMMAND",
)
