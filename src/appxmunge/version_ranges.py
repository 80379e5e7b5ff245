from nodesemver import make_range


def satisfies(version: str, range_expr: str) -> bool:
    """Whether `version` is matched by the npm-style range `range_expr`

    Unlike `nodesemver.satisfies`, an invalid range is not reported as a
    mismatch; the parse error from `make_range` is raised to the caller.

    >>> satisfies("10.0.0", ">=8.1.0")
    True
    >>> satisfies("8.1.0", "^10.0.0")
    False
    """
    return make_range(range_expr, loose=False).test(version)
