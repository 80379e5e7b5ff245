from typing import (
    Any,
    Mapping,
    Optional,
    List,
    Union,
    IO,
    NoReturn,
    Iterable,
)

from Levenshtein import distance

from appxmunge.changes import Change, PluginChanges
from appxmunge.exceptions import PluginChangesParseError
from appxmunge.manifest_parser.util import AttributePath
from appxmunge.util import _warn
from appxmunge.yaml import PLUGIN_YAML, YAMLError

ROOT_KEYS = frozenset({"id", "config-files"})
CONFIG_FILE_KEYS = frozenset(
    {
        "target",
        "parent",
        "xml",
        "versions",
        "device-target",
        "before",
        "after",
    }
)


def _detect_possible_typo(
    key: str,
    known_keys: Iterable[str],
    attribute_parent_path: AttributePath,
) -> None:
    k_len = len(key)
    for known_key in known_keys:
        if abs(k_len - len(known_key)) > 2:
            continue
        if distance(key, known_key) > 2:
            continue
        path = attribute_parent_path.path
        _warn(f'Possible typo: The key "{key}" should probably have been "{known_key}" at "{path}"')


class PluginChangesParser:
    """Reads the manifest changes a plugin declares from a YAML document

    The document has an `id` and a `config-files` list.  Each `config-files`
    entry names a `target` file, a `parent` selector and one or more `xml`
    fragments, optionally qualified by `versions` (a semver range) and
    `device-target`.  Every fragment becomes a separate `Change`.
    """

    def __init__(self, path: str, *, require_id: bool = True) -> None:
        self.path = path
        self._require_id = require_id

    def _error(self, msg: str) -> NoReturn:
        raise PluginChangesParseError(msg)

    def _check_keys(
        self,
        d: Mapping[str, Any],
        known_keys: Iterable[str],
        attribute_path: AttributePath,
    ) -> None:
        unknown = [k for k in d if k not in known_keys]
        for key in unknown:
            _detect_possible_typo(key, known_keys, attribute_path)
        if unknown:
            self._error(
                f'Unknown key(s) {", ".join(map(str, unknown))} at {attribute_path.path} in "{self.path}"'
            )

    def _ensure_value_is_type(self, v, t, attribute_path: AttributePath):
        if not isinstance(v, t):
            if isinstance(t, tuple):
                t_msg = "one of: " + ", ".join(x.__name__ for x in t)
            else:
                t_msg = f"a {t.__name__}"
            self._error(f'The key {attribute_path.path} must be {t_msg} in "{self.path}"')
        return v

    def _optional_key(
        self,
        d: Mapping[str, Any],
        key: str,
        attribute_parent_path: AttributePath,
        expected_type=str,
    ):
        v = d.get(key)
        if v is None:
            return None
        return self._ensure_value_is_type(v, expected_type, attribute_parent_path[key])

    def _required_key(
        self,
        d: Mapping[str, Any],
        key: str,
        attribute_parent_path: AttributePath,
        expected_type=str,
    ):
        v = d.get(key)
        if v is None:
            self._error(
                f'Missing required key {key} at {attribute_parent_path.path} in "{self.path}"'
            )
        return self._ensure_value_is_type(v, expected_type, attribute_parent_path[key])

    def _parse_config_file(
        self,
        d: Mapping[str, Any],
        attribute_path: AttributePath,
    ) -> List[Change]:
        self._ensure_value_is_type(d, dict, attribute_path)
        self._check_keys(d, CONFIG_FILE_KEYS, attribute_path)
        target = self._required_key(d, "target", attribute_path)
        parent = self._required_key(d, "parent", attribute_path)
        xml_raw = self._required_key(d, "xml", attribute_path, (str, list))
        versions = self._optional_key(d, "versions", attribute_path, (str, int, float))
        device_target = self._optional_key(d, "device-target", attribute_path)
        before = self._optional_key(d, "before", attribute_path)
        after = self._optional_key(d, "after", attribute_path)

        fragments: List[str]
        if isinstance(xml_raw, str):
            fragments = [xml_raw]
        else:
            xml_path = attribute_path["xml"]
            fragments = [
                self._ensure_value_is_type(x, str, xml_path[idx])
                for idx, x in enumerate(xml_raw)
            ]
            if not fragments:
                self._error(f'The key {xml_path.path} must not be empty in "{self.path}"')

        return [
            Change(
                fragment.strip(),
                target=target,
                parent=parent,
                before=before,
                after=after,
                versions=str(versions) if versions is not None else None,
                device_target=device_target,
            )
            for fragment in fragments
        ]

    def from_yaml_dict(self, yaml_data: object) -> PluginChanges:
        attribute_path = AttributePath.root_path()
        if yaml_data is None:
            yaml_data = {}
        data = self._ensure_value_is_type(yaml_data, dict, attribute_path)
        self._check_keys(data, ROOT_KEYS, attribute_path)
        if self._require_id:
            plugin_id = self._required_key(data, "id", attribute_path)
        else:
            plugin_id = self._optional_key(data, "id", attribute_path) or self.path
        config_files_path = attribute_path["config-files"]
        config_files = data.get("config-files")
        if config_files is None:
            config_files = []
        self._ensure_value_is_type(config_files, list, config_files_path)
        changes: List[Change] = []
        for idx, config_file in enumerate(config_files):
            changes.extend(self._parse_config_file(config_file, config_files_path[idx]))
        return PluginChanges(plugin_id, tuple(changes))

    def _parse(self, fd: Union[IO[bytes], str]) -> PluginChanges:
        try:
            data = PLUGIN_YAML.load(fd)
        except YAMLError as e:
            msg = str(e).rstrip()
            raise PluginChangesParseError(
                f"Could not parse {self.path} as a YAML document: {msg}"
            ) from e
        return self.from_yaml_dict(data)

    def parse(
        self,
        *,
        fd: Optional[Union[IO[bytes], str]] = None,
    ) -> PluginChanges:
        if fd is None:
            with open(self.path, "rb") as fd:
                return self._parse(fd)
        return self._parse(fd)


def parse_plugin_changes(path: str, *, require_id: bool = True) -> PluginChanges:
    return PluginChangesParser(path, require_id=require_id).parse()
