import textwrap

import pytest

from appxmunge.changes import Change
from appxmunge.exceptions import PluginChangesParseError
from appxmunge.manifest_parser.plugin_changes import (
    PluginChangesParser,
    parse_plugin_changes,
)


def _parse(content: str, *, require_id: bool = True):
    parser = PluginChangesParser("plugin.yaml", require_id=require_id)
    return parser.parse(fd=textwrap.dedent(content))


def test_parse_plugin_changes() -> None:
    plugin = _parse(
        """\
        id: cordova-plugin-camera
        config-files:
          - target: package.appxmanifest
            parent: /Package/Capabilities
            versions: ">=8.1.0"
            device-target: phone
            xml:
              - <Capability Name="contacts" />
              - '<DeviceCapability Name="webcam" />'
          - target: package.windows10.appxmanifest
            parent: /Package/Applications/Application/Extensions
            after: Extension
            xml: |
              <Extension Category="windows.activatableClass" />
        """
    )
    assert plugin.plugin_id == "cordova-plugin-camera"
    assert plugin.changes == (
        Change(
            '<Capability Name="contacts" />',
            target="package.appxmanifest",
            parent="/Package/Capabilities",
            versions=">=8.1.0",
            device_target="phone",
        ),
        Change(
            '<DeviceCapability Name="webcam" />',
            target="package.appxmanifest",
            parent="/Package/Capabilities",
            versions=">=8.1.0",
            device_target="phone",
        ),
        Change(
            '<Extension Category="windows.activatableClass" />',
            target="package.windows10.appxmanifest",
            parent="/Package/Applications/Application/Extensions",
            after="Extension",
        ),
    )


def test_numeric_versions_are_strings() -> None:
    plugin = _parse(
        """\
        id: p
        config-files:
          - target: package.appxmanifest
            parent: /Package/Capabilities
            versions: 10
            xml: <Capability Name="webcam" />
        """
    )
    (change,) = plugin.changes
    assert change.versions == "10"


def test_empty_document() -> None:
    plugin = _parse("", require_id=False)
    assert plugin.plugin_id == "plugin.yaml"
    assert plugin.changes == ()


@pytest.mark.parametrize(
    "content",
    [
        "config-files: []\n",
        "id: [a, b]\n",
        "- a\n- b\n",
        "id: p\nconfig-files: {}\n",
        "id: p\nunknown: true\n",
        "id: p\nconfig-files:\n  - parent: /Package\n    xml: <A/>\n",
        "id: p\nconfig-files:\n  - target: a\n    parent: /Package\n",
        "id: p\nconfig-files:\n  - target: a\n    parent: /Package\n    xml: []\n",
        "id: p\nconfig-files:\n  - target: a\n    parent: /Package\n    xml: [1]\n",
        "id: p\nconfig-files:\n  - target: a\n    parent: /Package\n    xml: <A/>\n    taget: b\n",
        "id: p\nconfig-files:\n  - just a string\n",
        "id: p\nconfig-files: [\n",
    ],
)
def test_invalid_plugin_changes(content: str) -> None:
    with pytest.raises(PluginChangesParseError):
        _parse(content)


def test_error_names_attribute_path() -> None:
    content = "id: p\nconfig-files:\n  - target: a\n    parent: /Package\n    xml: [<A/>, 2]\n"
    with pytest.raises(PluginChangesParseError) as e_info:
        _parse(content)
    assert "config-files[0].xml[1]" in e_info.value.message


def test_parse_from_file(tmp_path) -> None:
    path = tmp_path / "plugin.yaml"
    path.write_text(
        "id: p\nconfig-files:\n  - target: a\n    parent: /Package\n    xml: <A/>\n",
        encoding="utf-8",
    )
    plugin = parse_plugin_changes(str(path))
    assert plugin.plugin_id == "p"
    assert plugin.changes == (Change("<A/>", target="a", parent="/Package"),)
