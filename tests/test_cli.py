import os
import textwrap

import pytest

from appxmunge.commands.appxmunge_cmd.__main__ import parse_args
from appxmunge.commands.appxmunge_cmd.context import (
    CommandArg,
    DispatcherCommand,
    ROOT_COMMAND,
)
from appxmunge.manifest_table import WINDOWS_MANIFEST, WINDOWS10_MANIFEST
from appxmunge.munge_ledger import MungeLedger
from appxmunge.yaml import YAML

from tutil import read_capabilities

PLUGIN_YAML_CONTENT = textwrap.dedent(
    """\
    id: cordova-plugin-camera
    config-files:
      - target: package.appxmanifest
        parent: /Package/Capabilities
        versions: "10.0.0"
        xml: <Capability Name="$CAPABILITY" />
    """
)


@pytest.fixture()
def plugin_file(tmp_path) -> str:
    path = tmp_path / "plugin.yaml"
    path.write_text(PLUGIN_YAML_CONTENT, encoding="utf-8")
    return str(path)


def _run(*argv: str) -> None:
    ROOT_COMMAND(CommandArg(parse_args(list(argv))))


def test_install_and_uninstall(project_dir: str, plugin_file: str) -> None:
    manifest = os.path.join(project_dir, WINDOWS10_MANIFEST)
    _run(
        "install",
        plugin_file,
        "--project-dir",
        project_dir,
        "--variable",
        "CAPABILITY=contacts",
    )
    assert ("uap:Capability", "contacts") in read_capabilities(manifest)
    assert MungeLedger.for_project(project_dir).is_installed("cordova-plugin-camera")
    # Only the Windows 10 manifest is affected by the versions range
    assert read_capabilities(os.path.join(project_dir, WINDOWS_MANIFEST)) == [
        ("Capability", "internetClient")
    ]

    _run(
        "uninstall",
        plugin_file,
        "--project-dir",
        project_dir,
        "--variable",
        "CAPABILITY=contacts",
    )
    assert read_capabilities(manifest) == [("Capability", "internetClient")]
    assert not MungeLedger.for_project(project_dir).installed_plugins


def test_uninstall_keeps_preexisting_capability(project_dir: str, plugin_file: str) -> None:
    manifest = os.path.join(project_dir, WINDOWS10_MANIFEST)
    for command in ("install", "uninstall"):
        _run(
            command,
            plugin_file,
            "--project-dir",
            project_dir,
            "--variable",
            "CAPABILITY=internetClient",
        )
    assert read_capabilities(manifest) == [("Capability", "internetClient")]


def test_install_prefix_all(project_dir: str, plugin_file: str) -> None:
    _run(
        "install",
        plugin_file,
        "--project-dir",
        project_dir,
        "--prefix-policy",
        "all",
        "--variable",
        "CAPABILITY=webcam",
    )
    assert read_capabilities(os.path.join(project_dir, WINDOWS10_MANIFEST)) == [
        ("Capability", "internetClient"),
        ("Capability", "webcam"),
        ("uap:Capability", "webcam"),
    ]


def test_show_munge(plugin_file: str, tmp_path, capsys) -> None:
    edit_config = tmp_path / "edit-config.yaml"
    edit_config.write_text(
        textwrap.dedent(
            """\
            config-files:
              - target: package.appxmanifest
                parent: /Package/Capabilities
                device-target: windows
                xml: <DeviceCapability Name="microphone" />
            """
        ),
        encoding="utf-8",
    )
    _run(
        "show-munge",
        plugin_file,
        "--variable",
        "CAPABILITY=webcam",
        "--edit-config",
        str(edit_config),
    )
    output = YAML(typ="safe").load(capsys.readouterr().out)
    files = output["files"]
    assert set(files) == {
        "package.windows.appxmanifest",
        "package.windows10.appxmanifest",
    }
    assert files["package.windows10.appxmanifest"]["parents"]["/Package/Capabilities"] == [
        {"xml": '<Capability Name="webcam" />', "count": 1},
        {"xml": '<DeviceCapability Name="microphone" />', "count": 1},
    ]


def test_invalid_variable(project_dir: str, plugin_file: str) -> None:
    with pytest.raises(SystemExit):
        _run("install", plugin_file, "--project-dir", project_dir, "--variable", "NOPE")


def test_missing_project_dir(tmp_path, plugin_file: str) -> None:
    with pytest.raises(SystemExit):
        _run("install", plugin_file, "--project-dir", str(tmp_path / "missing"))


def test_invalid_prefix_policy(plugin_file: str) -> None:
    with pytest.raises(SystemExit):
        parse_args(["install", plugin_file, "--prefix-policy", "some"])


def test_duplicate_subcommand_is_rejected() -> None:
    dispatcher = DispatcherCommand("test", dest="test_command")
    dispatcher.register_subcommand("run")(lambda context: None)
    with pytest.raises(ValueError):
        dispatcher.register_subcommand("run")(lambda context: None)
