"""
Materialized path helpers for the organization tree.

A path lists every ancestor id from the root down to the node itself,
slash-delimited with a leading and trailing slash: ``/root/dept/team/``.
Subtree membership is then a plain string-prefix test.
"""

SEPARATOR = "/"


def root_path(org_id: str) -> str:
    """Path of a node without a parent."""
    return f"{SEPARATOR}{org_id}{SEPARATOR}"


def child_path(parent_path: str, child_id: str) -> str:
    """Path of ``child_id`` placed directly under the node at ``parent_path``."""
    return f"{parent_path}{child_id}{SEPARATOR}"


def is_descendant_or_self(candidate_path: str, ancestor_path: str) -> bool:
    # Trailing separator keeps "/A/" from matching "/AB/".
    return candidate_path.startswith(ancestor_path)


def segments(path: str) -> list[str]:
    return [part for part in path.split(SEPARATOR) if part]


def parent_path_of(path: str) -> str:
    """Strip the last id segment. A root's parent path is ``"/"``."""
    parts = segments(path)[:-1]
    if not parts:
        return SEPARATOR
    return SEPARATOR + SEPARATOR.join(parts) + SEPARATOR


def depth_of(path: str) -> int:
    """Number of id segments minus one, i.e. 0 for a root."""
    return len(segments(path)) - 1


def rebase_path(path: str, old_prefix: str, new_prefix: str) -> str:
    """
    Swap ``old_prefix`` for ``new_prefix`` at the start of ``path``.

    Used for descendants when their subtree root moves: ``/R/T/X/`` rebased
    from ``/R/T/`` to ``/T/`` becomes ``/T/X/``.
    """
    return new_prefix + path[len(old_prefix):]
