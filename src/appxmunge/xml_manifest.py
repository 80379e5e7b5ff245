import os
from typing import Optional, List, Sequence

from lxml import etree

from appxmunge.changes import Change, Munge
from appxmunge.exceptions import AppxMungeManifestError
from appxmunge.munge_ledger import PreservedFragments
from appxmunge.util import _debug

_FRAGMENT_WRAPPER = "appxmunge-fragment"


def _local_name(tag_or_selector_segment: str) -> str:
    if tag_or_selector_segment.startswith("{"):
        return etree.QName(tag_or_selector_segment).localname
    return tag_or_selector_segment.rpartition(":")[2]


def _is_element(node: object) -> bool:
    return isinstance(node, etree._Element) and isinstance(node.tag, str)


def _element_children(element: etree._Element) -> List[etree._Element]:
    return [c for c in element if _is_element(c)]


def _walk(element: etree._Element, segments: Sequence[str]) -> Optional[etree._Element]:
    current = element
    for segment in segments:
        name = _local_name(segment)
        current = next(
            (c for c in _element_children(current) if _local_name(c.tag) == name),
            None,
        )
        if current is None:
            return None
    return current


def resolve_parent(root: etree._Element, selector: str) -> Optional[etree._Element]:
    """Find the element `selector` refers to

    Selectors are `/`-separated element names compared by local name, so the
    (default) namespace of the manifest does not need to be spelled out.  An
    absolute selector (`/Package/Capabilities`) starts at the document root;
    a relative one (`Capabilities`) matches the first element in document
    order where the path fits.
    """
    segments = [s for s in selector.split("/") if s]
    if not segments:
        return None
    if selector.startswith("/"):
        if _local_name(root.tag) != _local_name(segments[0]):
            return None
        return _walk(root, segments[1:])
    for element in root.iter():
        if not _is_element(element) or _local_name(element.tag) != _local_name(
            segments[0]
        ):
            continue
        match = _walk(element, segments[1:])
        if match is not None:
            return match
    return None


def parse_fragment(root: etree._Element, xml: str) -> etree._Element:
    """Parse `xml` with the namespace declarations of `root` in scope"""
    declarations = []
    for prefix, uri in root.nsmap.items():
        attr = "xmlns" if prefix is None else f"xmlns:{prefix}"
        declarations.append(f'{attr}="{uri}"')
    wrapped = f"<{_FRAGMENT_WRAPPER} {' '.join(declarations)}>{xml}</{_FRAGMENT_WRAPPER}>"
    try:
        wrapper = etree.fromstring(wrapped.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        raise AppxMungeManifestError(
            f"The XML fragment {xml!r} is not well-formed: {e}"
        ) from e
    children = _element_children(wrapper)
    if len(children) != 1:
        raise AppxMungeManifestError(
            f"Expected exactly one XML element in the fragment {xml!r}, got {len(children)}"
        )
    fragment = children[0]
    fragment.tail = None
    return fragment


def elements_equal(a: etree._Element, b: etree._Element) -> bool:
    if a.tag != b.tag or dict(a.attrib) != dict(b.attrib):
        return False
    if (a.text or "").strip() != (b.text or "").strip():
        return False
    a_children = _element_children(a)
    b_children = _element_children(b)
    if len(a_children) != len(b_children):
        return False
    return all(elements_equal(x, y) for x, y in zip(a_children, b_children))


def _find_equal_child(
    parent: etree._Element,
    fragment: etree._Element,
) -> Optional[etree._Element]:
    return next(
        (c for c in _element_children(parent) if elements_equal(c, fragment)), None
    )


def _insert_index(parent: etree._Element, change: Change) -> int:
    children = list(parent)
    names = [_local_name(c.tag) if _is_element(c) else None for c in children]
    if change.after:
        for candidate in change.after.split(";"):
            candidate = _local_name(candidate.strip())
            if candidate in names:
                return len(names) - names[::-1].index(candidate)
        return 0
    if change.before:
        wanted = {_local_name(n.strip()) for n in change.before.split(";")}
        for idx, name in enumerate(names):
            if name in wanted:
                return idx
    return len(children)


def graft_change(parent: etree._Element, change: Change) -> bool:
    fragment = parse_fragment(parent.getroottree().getroot(), change.xml)
    if _find_equal_child(parent, fragment) is not None:
        _debug(f"Not adding {change.xml}: an identical element is already present")
        return False
    parent.insert(_insert_index(parent, change), fragment)
    return True


def prune_change(parent: etree._Element, change: Change) -> bool:
    fragment = parse_fragment(parent.getroottree().getroot(), change.xml)
    existing = _find_equal_child(parent, fragment)
    if existing is None:
        _debug(f"Not removing {change.xml}: no such element")
        return False
    parent.remove(existing)
    return True


class XmlManifestApplier:
    """Splices munges into (and out of) the manifest files of a project

    `file` names passed to `apply_file_munge` are resolved relative to
    `project_dir`.

    When `preserved` is given, fragments that are already present when they
    are added get recorded there, and removing them later leaves the element
    in the manifest.
    """

    def __init__(
        self,
        project_dir: str,
        preserved: Optional[PreservedFragments] = None,
    ) -> None:
        self.project_dir = project_dir
        self.preserved = preserved

    def _remove(
        self,
        file: str,
        selector: str,
        parent: etree._Element,
        change: Change,
    ) -> bool:
        preserved = self.preserved
        if preserved is not None and preserved.discard(file, selector, change.xml):
            _debug(f"Keeping {change.xml} in {file}: it was present before it was added")
            return False
        return prune_change(parent, change)

    def _add(
        self,
        file: str,
        selector: str,
        parent: etree._Element,
        change: Change,
    ) -> bool:
        if graft_change(parent, change):
            return True
        preserved = self.preserved
        if preserved is not None:
            preserved.add(file, selector, change.xml)
        return False

    def manifest_path(self, file: str) -> str:
        return os.path.join(self.project_dir, file)

    def apply_file_munge(self, file: str, munge: Munge, remove: bool = False) -> None:
        path = self.manifest_path(file)
        parser = etree.XMLParser(remove_blank_text=True)
        tree = etree.parse(path, parser)
        root = tree.getroot()
        modified = False
        for selector, changes in munge.parents.items():
            if not changes:
                continue
            parent = resolve_parent(root, selector)
            if parent is None:
                raise AppxMungeManifestError(
                    f'Unable to {"remove" if remove else "add"} XML at "{selector}" in {path}:'
                    " The selector did not match any element"
                )
            for change in changes:
                if remove:
                    modified |= self._remove(file, selector, parent, change)
                else:
                    modified |= self._add(file, selector, parent, change)
        if not modified:
            return
        _debug(f"Writing {path}")
        tree.write(
            path,
            xml_declaration=True,
            encoding="utf-8",
            pretty_print=True,
        )
