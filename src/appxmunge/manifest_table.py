import dataclasses
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping, Tuple, Union

ManifestTableEntry = Union[str, Tuple[str, ...]]
VersionedManifestTable = Mapping[str, Mapping[str, ManifestTableEntry]]

ABSTRACT_MANIFEST = "package.appxmanifest"
WINDOWS_MANIFEST = "package.windows.appxmanifest"
PHONE_MANIFEST = "package.phone.appxmanifest"
WINDOWS10_MANIFEST = "package.windows10.appxmanifest"

CAPS_SELECTOR = "/Package/Capabilities"
UAP_PREFIX = "uap"
DEFAULT_DEVICE_TARGET = "all"

# Key order is significant: the demultiplexer emits changes in this order.
MANIFESTS: VersionedManifestTable = MappingProxyType(
    {
        "windows": MappingProxyType(
            {
                "8.1.0": WINDOWS_MANIFEST,
                "10.0.0": WINDOWS10_MANIFEST,
            }
        ),
        "phone": MappingProxyType(
            {
                "8.1.0": PHONE_MANIFEST,
                "10.0.0": WINDOWS10_MANIFEST,
            }
        ),
        "all": MappingProxyType(
            {
                "8.1.0": (WINDOWS_MANIFEST, PHONE_MANIFEST),
                "10.0.0": WINDOWS10_MANIFEST,
            }
        ),
    }
)

# Capabilities that Windows 10 only accepts in the "uap" namespace
CAPS_NEED_UAP_PREFIX: FrozenSet[str] = frozenset(
    {
        "documentsLibrary",
        "picturesLibrary",
        "videosLibrary",
        "musicLibrary",
        "enterpriseAuthentication",
        "sharedUserCertificates",
        "removableStorage",
        "appointments",
        "contacts",
        "userAccountInformation",
        "phoneCall",
        "blockedChatMessages",
        "objects3D",
    }
)


class PrefixPolicy(Enum):
    """How capability declarations are mirrored into the "uap" namespace

    WHITELIST only prefixes capabilities listed in the must-prefix set and
    rewrites the capability list of the unified manifest in place.  ALL
    prefixes every capability declaration and applies the prefixed copies as
    a separate munge next to the original declarations.
    """

    WHITELIST = "whitelist"
    ALL = "all"


@dataclasses.dataclass(slots=True, frozen=True)
class MungerConfig:
    manifest_table: VersionedManifestTable = dataclasses.field(
        default_factory=lambda: MANIFESTS
    )
    caps_needing_prefix: FrozenSet[str] = CAPS_NEED_UAP_PREFIX
    prefix_policy: PrefixPolicy = PrefixPolicy.WHITELIST
    abstract_manifest: str = ABSTRACT_MANIFEST
    unified_manifest: str = WINDOWS10_MANIFEST
    capabilities_selector: str = CAPS_SELECTOR
    prefix: str = UAP_PREFIX
    default_device_target: str = DEFAULT_DEVICE_TARGET

    def with_prefix_policy(self, prefix_policy: PrefixPolicy) -> "MungerConfig":
        return dataclasses.replace(self, prefix_policy=prefix_policy)


DEFAULT_MUNGER_CONFIG = MungerConfig()
