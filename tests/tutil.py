import dataclasses
import os
from typing import List, Tuple, Optional, Dict

from lxml import etree

from appxmunge.changes import Change, Munge, ConfigMunge, capability_name
from appxmunge.manifest_table import (
    WINDOWS_MANIFEST,
    PHONE_MANIFEST,
    WINDOWS10_MANIFEST,
    CAPS_SELECTOR,
)

UAP_NS = "http://schemas.microsoft.com/appx/manifest/uap/windows10"

WINDOWS10_MANIFEST_CONTENT = f"""\
<?xml version="1.0" encoding="utf-8"?>
<Package xmlns="http://schemas.microsoft.com/appx/manifest/foundation/windows10"
         xmlns:mp="http://schemas.microsoft.com/appx/2014/phone/manifest"
         xmlns:uap="{UAP_NS}"
         IgnorableNamespaces="uap mp">
  <Identity Name="io.cordova.hellocordova" Publisher="CN=Apache Cordova Team" Version="1.0.0.0" />
  <Capabilities>
    <Capability Name="internetClient" />
  </Capabilities>
</Package>
"""

WINDOWS_MANIFEST_CONTENT = """\
<?xml version="1.0" encoding="utf-8"?>
<Package xmlns="http://schemas.microsoft.com/appx/2010/manifest"
         xmlns:m2="http://schemas.microsoft.com/appx/2013/manifest">
  <Identity Name="io.cordova.hellocordova" Publisher="CN=Apache Cordova Team" Version="1.0.0.0" />
  <Capabilities>
    <Capability Name="internetClient" />
  </Capabilities>
</Package>
"""

PHONE_MANIFEST_CONTENT = """\
<?xml version="1.0" encoding="utf-8"?>
<Package xmlns="http://schemas.microsoft.com/appx/2010/manifest"
         xmlns:m3="http://schemas.microsoft.com/appx/2014/manifest"
         xmlns:mp="http://schemas.microsoft.com/appx/2014/phone/manifest">
  <Identity Name="io.cordova.hellocordova" Publisher="CN=Apache Cordova Team" Version="1.0.0.0" />
  <Capabilities>
    <Capability Name="internetClientServer" />
  </Capabilities>
</Package>
"""

MANIFEST_CONTENTS = {
    WINDOWS_MANIFEST: WINDOWS_MANIFEST_CONTENT,
    PHONE_MANIFEST: PHONE_MANIFEST_CONTENT,
    WINDOWS10_MANIFEST: WINDOWS10_MANIFEST_CONTENT,
}


def cap(
    name: str,
    *,
    element: str = "Capability",
    target: Optional[str] = None,
    parent: Optional[str] = None,
    versions: Optional[str] = None,
    device_target: Optional[str] = None,
    count: int = 1,
) -> Change:
    return Change(
        f'<{element} Name="{name}" />',
        target=target,
        parent=parent,
        versions=versions,
        device_target=device_target,
        count=count,
    )


def caps_munge(*changes: Change, selector: str = CAPS_SELECTOR) -> Munge:
    return Munge.from_parents({selector: changes})


def names_of(changes) -> List[str]:
    return [capability_name(c) for c in changes]


def write_manifests(project_dir: str) -> None:
    for name, content in MANIFEST_CONTENTS.items():
        with open(os.path.join(project_dir, name), "wt", encoding="utf-8") as fd:
            fd.write(content)


def read_capabilities(path: str) -> List[Tuple[str, str]]:
    """Capability elements of a manifest as (element, name) pairs

    Elements in the uap namespace are reported with a "uap:" prefix.
    """
    root = etree.parse(path).getroot()
    capabilities = next(
        c for c in root if etree.QName(c).localname == "Capabilities"
    )
    result = []
    for element in capabilities:
        if not isinstance(element.tag, str):
            continue
        qname = etree.QName(element)
        label = f"uap:{qname.localname}" if qname.namespace == UAP_NS else qname.localname
        result.append((label, element.get("Name")))
    return result


@dataclasses.dataclass(slots=True, frozen=True)
class ApplyCall:
    file: str
    munge: Munge
    remove: bool


class RecordingApplier:
    def __init__(self) -> None:
        self.calls: List[ApplyCall] = []

    def apply_file_munge(self, file: str, munge: Munge, remove: bool = False) -> None:
        self.calls.append(ApplyCall(file, munge, remove))


class RecordingGenerator:
    def __init__(self) -> None:
        self.calls: List[Tuple[List[Change], str, Optional[Dict[str, str]]]] = []

    def generate_plugin_config_munge(self, changes, plugin_id, variables=None) -> ConfigMunge:
        self.calls.append((list(changes), plugin_id, variables))
        return ConfigMunge()
