"""Reference resolution helpers.

These functions turn user supplied names (branches, tags, raw object ids)
into commit hashes.  Branches take precedence over tags, and raw hashes are
only accepted when they name an existing commit.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from git import GitCommandError, Repo, TagReference

from ..constants import DEFAULT_REMOTE
from ..errors import ReferenceNotFoundError

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]{40}$")


def resolve_commit(repo: Repo, rev: str) -> str | None:
    """Return the commit sha ``rev`` points to, or ``None``."""
    try:
        out = repo.git.rev_parse("--verify", "--quiet", f"{rev}^{{commit}}")
    except GitCommandError:
        return None
    return out.strip() or None


def get_revision_reference_name(repo: Repo, name: str) -> str:
    """Return the full reference name for a branch or tag called ``name``."""
    for ref in (f"refs/heads/{name}", f"refs/tags/{name}"):
        if resolve_commit(repo, ref) is not None:
            return ref
    raise ReferenceNotFoundError("no reference name was found")


def get_hash(repo: Repo, base: str, refer_remote: bool = False, remote: str = DEFAULT_REMOTE) -> str:
    """Resolve ``base`` to a commit hash.

    Lookup order is branch, tag, then a full 40 character object id.
    Abbreviated ids are not accepted.  With ``refer_remote`` the branch is
    looked up under ``refs/remotes/<remote>/`` instead of ``refs/heads/``.
    """
    branch_ref = f"refs/remotes/{remote}/{base}" if refer_remote else f"refs/heads/{base}"
    for ref in (branch_ref, f"refs/tags/{base}"):
        sha = resolve_commit(repo, ref)
        if sha is not None:
            return sha
    if _HEX_RE.match(base):
        sha = resolve_commit(repo, base)
        if sha is not None:
            return sha
    raise ReferenceNotFoundError("invalid base reference")


def get_latest_tag_reference(repo: Repo) -> TagReference:
    """Return the tag whose commit has the most recent author date.

    When several tags share the same date the first one listed wins.  Tags
    that do not point to a commit are ignored.
    """
    latest_date = datetime.fromtimestamp(0, tz=timezone.utc)
    latest: TagReference | None = None
    for tag in repo.tags:
        try:
            authored = tag.commit.authored_datetime
        except ValueError:
            # tags on trees or blobs have no author date
            logger.debug("tag %s does not point to a commit, skipping", tag.name)
            continue
        if latest_date < authored:
            latest_date = authored
            latest = tag
    if latest is None:
        raise ReferenceNotFoundError("no tag was found")
    return latest
