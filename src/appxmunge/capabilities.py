import re
from typing import Iterable, List, AbstractSet

from appxmunge.changes import Change, Munge, capability_name
from appxmunge.manifest_table import PrefixPolicy, CAPS_NEED_UAP_PREFIX, UAP_PREFIX
from appxmunge.util import _debug

CAPABILITY_ELEMENT_RE = re.compile(r"^\s*<Capability\s")
_CAPABILITY_TAG_RE = re.compile(r"Capability")


def dedupe_capabilities(changes: Iterable[Change]) -> List[Change]:
    """Keep the first change for each capability name

    Only used when installing.  Removal must see every change that was
    originally requested, so nothing is dropped on that path.
    """
    seen = set()
    unique = []
    for change in changes:
        name = capability_name(change)
        if name in seen:
            continue
        seen.add(name)
        unique.append(change)
    return unique


def sort_capabilities(changes: Iterable[Change]) -> List[Change]:
    """Stable sort by capability name, comparing names ordinally"""
    return sorted(changes, key=capability_name)


def normalize_capabilities(changes: Iterable[Change]) -> List[Change]:
    return sort_capabilities(dedupe_capabilities(changes))


def is_capability_change(change: Change) -> bool:
    return CAPABILITY_ELEMENT_RE.match(change.xml) is not None


def _prefixed_change(change: Change, prefix: str) -> Change:
    # Only the first occurrence is rewritten: the element name precedes any
    # attribute value that might happen to contain the word.
    return Change(
        _CAPABILITY_TAG_RE.sub(f"{prefix}:Capability", change.xml, count=1),
        count=change.count,
        before=change.before,
        after=change.after,
    )


def prefix_capability_changes(
    changes: Iterable[Change],
    policy: PrefixPolicy,
    *,
    caps_needing_prefix: AbstractSet[str] = CAPS_NEED_UAP_PREFIX,
    prefix: str = UAP_PREFIX,
) -> List[Change]:
    """Derive namespace-prefixed capability declarations

    Changes that do not declare a `<Capability>` element are dropped.  With
    `PrefixPolicy.WHITELIST`, capabilities outside `caps_needing_prefix` are
    passed through unchanged; with `PrefixPolicy.ALL` every capability is
    prefixed.

    :param changes: The changes listed under the capabilities selector
    :param policy: Which capabilities to prefix
    :param caps_needing_prefix: Capability names that require the prefix
      (only consulted for `PrefixPolicy.WHITELIST`)
    :param prefix: The namespace prefix to use
    :return: The new changes, without `target` or `parent`
    """
    result = []
    for change in changes:
        if not is_capability_change(change):
            continue
        if (
            policy is PrefixPolicy.WHITELIST
            and capability_name(change) not in caps_needing_prefix
        ):
            result.append(change)
            continue
        prefixed = _prefixed_change(change, prefix)
        _debug(f"Derived {prefixed.xml} from {change.xml}")
        result.append(prefixed)
    return result


def generate_prefixed_capabilities(
    munge: Munge,
    policy: PrefixPolicy,
    *,
    caps_needing_prefix: AbstractSet[str] = CAPS_NEED_UAP_PREFIX,
    prefix: str = UAP_PREFIX,
) -> Munge:
    """Generate a munge with the prefixed counterparts of `munge`'s capabilities

    Every selector of the input munge is present in the result, even when it
    ends up with no changes.
    """
    return Munge.from_parents(
        {
            selector: prefix_capability_changes(
                changes,
                policy,
                caps_needing_prefix=caps_needing_prefix,
                prefix=prefix,
            )
            for selector, changes in munge.parents.items()
        }
    )
