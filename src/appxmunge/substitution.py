import re
from typing import NoReturn, Optional, Mapping

from appxmunge.exceptions import AppxMungeSubstitutionError

SUBST_VAR_RE = re.compile(
    r"""
    [$]
    (
        [A-Za-z_][A-Za-z0-9_]*
    )
    \b
""",
    re.VERBOSE,
)


class Substitution:
    def substitute(self, value: str, definition_source: str, /) -> str:
        raise NotImplementedError

    def with_extra_substitutions(self, **extra_substitutions: str) -> "Substitution":
        raise NotImplementedError

    def _replacement(self, matched_key: str, definition_source: str) -> str:
        self._error(
            f"Cannot resolve ${matched_key}."
            f" The error occurred while trying to process {definition_source}"
        )

    def _error(
        self,
        msg: str,
        *,
        caused_by: Optional[BaseException] = None,
    ) -> NoReturn:
        raise AppxMungeSubstitutionError(msg) from caused_by

    def _apply_substitution(
        self,
        pattern: re.Pattern[str],
        value: str,
        definition_source: str,
        /,
    ) -> str:
        def _replace(match: re.Match[str]) -> str:
            matched_key = match.group(1)
            replacement_value = self._replacement(matched_key, definition_source)
            return replacement_value

        return pattern.sub(_replace, value)


class NullSubstitution(Substitution):
    def substitute(self, value: str, definition_source: str, /) -> str:
        return value

    def with_extra_substitutions(self, **extra_substitutions: str) -> "Substitution":
        return self


NULL_SUBSTITUTION = NullSubstitution()
del NullSubstitution


class SubstitutionImpl(Substitution):
    """Replaces `$NAME` references in plugin XML fragments

    Variables are typically supplied by the user when installing a plugin
    (e.g., `--variable API_KEY=...`).  References to variables that are not
    defined are an error.
    """

    __slots__ = (
        "_static_variables",
        "_parent",
    )

    def __init__(
        self,
        /,
        static_variables: Optional[Mapping[str, str]] = None,
        parent: Optional["SubstitutionImpl"] = None,
    ) -> None:
        self._static_variables = (
            dict(static_variables) if static_variables is not None else {}
        )
        self._parent = parent

    def _replacement(self, key: str, definition_source: str) -> str:
        static_variables = self._static_variables
        if key in static_variables:
            return static_variables[key]
        parent = self._parent
        if parent is not None:
            return parent._replacement(key, definition_source)
        self._error(
            f"Cannot resolve ${key}: it is not a known variable."
            f" The error occurred while trying to process {definition_source}"
        )

    def with_extra_substitutions(self, **extra_substitutions: str) -> "Substitution":
        if not extra_substitutions:
            return self
        return SubstitutionImpl(
            static_variables=extra_substitutions,
            parent=self,
        )

    def substitute(self, value: str, definition_source: str, /) -> str:
        if "$" not in value:
            return value
        return self._apply_substitution(SUBST_VAR_RE, value, definition_source)
