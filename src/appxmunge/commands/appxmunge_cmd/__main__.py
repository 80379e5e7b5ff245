#!/usr/bin/python3 -B
import argparse
import os
import sys
import textwrap
import traceback
from typing import List, Optional, NoReturn

from argcomplete import autocomplete

from appxmunge.commands.appxmunge_cmd.context import (
    CommandArg,
    CommandContext,
    ROOT_COMMAND,
    add_arg,
)
from appxmunge.changes import ConfigMunge
from appxmunge.exceptions import AppxMungeRuntimeError
from appxmunge.manifest_table import PrefixPolicy
from appxmunge.util import (
    _error,
    _info,
    _warn,
    ColorizedArgumentParser,
    program_name,
    setup_logging,
)
from appxmunge.version import __version__
from appxmunge.yaml import YAML

_PLUGIN_FILE_ARG = add_arg(
    "plugin_file",
    metavar="PLUGIN_FILE",
    help="YAML file with the manifest changes declared by the plugin",
)
_VARIABLE_ARG = add_arg(
    "--variable",
    dest="variables",
    action="append",
    default=[],
    metavar="NAME=VALUE",
    help="Define a variable used in the XML fragments as $NAME. Can be used multiple times",
)
_EDIT_CONFIG_ARG = add_arg(
    "--edit-config",
    dest="edit_config_files",
    action="append",
    default=[],
    metavar="FILE",
    help="Additional changes (same format as PLUGIN_FILE, `id` is optional) applied together"
    " with the plugin's changes. Can be used multiple times",
)
_PROJECT_DIR_ARG = add_arg(
    "--project-dir",
    dest="project_dir",
    default=".",
    help="The directory with the appx manifests (default: current directory)",
)
_PREFIX_POLICY_ARG = add_arg(
    "--prefix-policy",
    dest="prefix_policy",
    choices=[p.value for p in PrefixPolicy],
    default=PrefixPolicy.WHITELIST.value,
    help="Which capabilities are also declared in the uap namespace of the Windows 10 manifest"
    " (default: %(default)s)",
)


def _report_applied(verb: str, plugin_id: str, config_munge: ConfigMunge) -> None:
    if config_munge.is_empty():
        _info(f"{verb} {plugin_id}: No manifest changes needed")
        return
    for file in sorted(config_munge.files):
        munge = config_munge.files[file]
        count = sum(len(c) for c in munge.parents.values())
        _info(f"{verb} {plugin_id}: {count} change(s) to {file}")


@ROOT_COMMAND.register_subcommand(
    "install",
    help_description="Apply the manifest changes of a plugin to the project",
    argparser=[
        _PLUGIN_FILE_ARG,
        _PROJECT_DIR_ARG,
        _VARIABLE_ARG,
        _EDIT_CONFIG_ARG,
        _PREFIX_POLICY_ARG,
    ],
)
def _install(context: CommandContext) -> None:
    plugin = context.plugin_changes()
    applied = context.installer().add_plugin_changes(
        plugin,
        context.variables,
        context.edit_config_changes(),
    )
    _report_applied("Installed", plugin.plugin_id, applied)


@ROOT_COMMAND.register_subcommand(
    "uninstall",
    help_description="Remove the manifest changes of a plugin from the project",
    argparser=[
        _PLUGIN_FILE_ARG,
        _PROJECT_DIR_ARG,
        _VARIABLE_ARG,
        _EDIT_CONFIG_ARG,
        _PREFIX_POLICY_ARG,
    ],
)
def _uninstall(context: CommandContext) -> None:
    plugin = context.plugin_changes()
    removed = context.installer().remove_plugin_changes(
        plugin,
        context.variables,
        context.edit_config_changes(),
    )
    _report_applied("Uninstalled", plugin.plugin_id, removed)


@ROOT_COMMAND.register_subcommand(
    "show-munge",
    help_description="Show the per-manifest changes of a plugin without applying them",
    argparser=[
        _PLUGIN_FILE_ARG,
        _VARIABLE_ARG,
        _EDIT_CONFIG_ARG,
    ],
)
def _show_munge(context: CommandContext) -> None:
    plugin = context.plugin_changes()
    config_munge = context.platform_munger().generate_plugin_config_munge(
        plugin.changes,
        plugin.plugin_id,
        context.variables,
        context.edit_config_changes(),
    )
    yaml = YAML()
    yaml.default_flow_style = False
    yaml.dump(config_munge.to_dict(), sys.stdout)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    description = textwrap.dedent(
        """\
    The `appxmunge` program applies the manifest changes declared by plugins to the
    appx manifests of a Windows project.

    Changes to the abstract `package.appxmanifest` are distributed to the concrete
    Windows 8.1, Windows Phone 8.1 and Windows 10 manifests based on the `versions`
    and `device-target` of the change.
    """
    )

    parser = ColorizedArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        prog=program_name(),
    )

    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-d",
        "--debug",
        dest="debug_mode",
        action="store_true",
        default=False,
        help="Enable debug logging and raw stack traces on errors.",
    )

    ROOT_COMMAND.configure(parser)

    autocomplete(parser)

    return parser.parse_args(sys.argv[1:] if argv is None else argv)


def _error_w_stack_trace(
    warning: str,
    error_msg: str,
    stacktrace: BaseException,
    debug_mode: bool,
) -> "NoReturn":
    if debug_mode:
        _warn(
            "Re-raising original exception to show the full stack trace due to debug mode being active"
        )
        raise stacktrace
    _warn(warning)
    _warn("  ----- 8< ---- BEGIN STACK TRACE ---- 8< -----")
    traceback.print_exception(stacktrace)
    _warn("  ----- 8< ---- END STACK TRACE ---- 8< -----")
    _error(error_msg)


def _setup_and_parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    is_arg_completing = "_ARGCOMPLETE" in os.environ
    if not is_arg_completing:
        setup_logging()
    parsed_args = parse_args(argv)
    if is_arg_completing:
        setup_logging()
    return parsed_args


def main(argv: Optional[List[str]] = None) -> None:
    parsed_args = _setup_and_parse_args(argv)
    try:
        ROOT_COMMAND(CommandArg(parsed_args))
    except AppxMungeRuntimeError as e:
        if parsed_args.debug_mode:
            _warn(
                "Re-raising original exception to show the full stack trace due to debug mode being active"
            )
            raise e
        _error(e.message)
    except Exception as e:
        _error_w_stack_trace(
            "Unhandled exception (Re-run with --debug to see the raw stack trace)",
            str(e),
            e,
            parsed_args.debug_mode,
        )


if __name__ == "__main__":
    main()
