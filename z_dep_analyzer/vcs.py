"""VCS URL normalization and project VCS detection."""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from z_dep_analyzer.exceptions import ToolInvocationFailed
from z_dep_analyzer.models.identifier import VcsInfo, VcsType
from z_dep_analyzer.process import ProcessRunner

log = structlog.get_logger(__name__)

_KNOWN_GIT_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")

# npm "repository" shortcuts, see https://docs.npmjs.com/cli/configuring-npm/package-json#repository
_SHORTCUT_HOSTS = {
    "github": "github.com",
    "gitlab": "gitlab.com",
    "bitbucket": "bitbucket.org",
}
_SHORTCUT_RE = re.compile(r"^(?:(github|gitlab|bitbucket):)?([\w.-]+/[\w.-]+?)(?:#(.+))?$")
_SCP_RE = re.compile(r"^(?:ssh://)?git@([^:/]+)[:/](.+)$")
_TREE_RE = re.compile(
    r"^(https://(?:github\.com|gitlab\.com)/[^/]+/[^/]+?)(?:\.git)?/(?:-/)?tree/([^/]+)(?:/(.*))?$"
)
_AUTHOR_RE = re.compile(r"^\s*([^<(]*)")


def _ensure_git_suffix(url: str) -> str:
    return url if url.endswith(".git") else f"{url}.git"


def parse_vcs_url(url: str) -> VcsInfo:
    """Normalize a declared repository URL into a :class:`VcsInfo`."""
    url = url.strip()
    if not url:
        return VcsInfo.EMPTY

    revision = ""
    if "://" not in url and not url.startswith("git@"):
        match = _SHORTCUT_RE.match(url)
        if match:
            host = _SHORTCUT_HOSTS[match.group(1) or "github"]
            return VcsInfo(
                VcsType.GIT,
                f"https://{host}/{_ensure_git_suffix(match.group(2))}",
                match.group(3) or "",
            )

    if "#" in url:
        url, revision = url.split("#", 1)

    for prefix in ("git+https://", "git+http://"):
        if url.startswith(prefix):
            url = url[len("git+") :]
    if url.startswith("git+ssh://"):
        url = url[len("git+") :]

    scp = _SCP_RE.match(url)
    if scp:
        url = f"https://{scp.group(1)}/{scp.group(2)}"
    elif url.startswith("git://"):
        url = "https://" + url[len("git://") :]
    elif url.startswith("http://") and any(host in url for host in _KNOWN_GIT_HOSTS):
        url = "https://" + url[len("http://") :]

    tree = _TREE_RE.match(url)
    if tree:
        return VcsInfo(
            VcsType.GIT, _ensure_git_suffix(tree.group(1)), tree.group(2), tree.group(3) or ""
        )

    if any(f"//{host}/" in url for host in _KNOWN_GIT_HOSTS):
        return VcsInfo(VcsType.GIT, _ensure_git_suffix(url.rstrip("/")), revision)

    vcs_type = VcsType.GIT if url.endswith(".git") else VcsType.UNKNOWN
    return VcsInfo(vcs_type, url, revision)


def _find_git_work_tree(path: Path) -> Path | None:
    for candidate in (path, *path.parents):
        if (candidate / ".git").exists():
            return candidate
    return None


def process_project_vcs(
    working_dir: Path,
    vcs: VcsInfo,
    homepage_url: str,
    runner: ProcessRunner,
) -> VcsInfo:
    """Determine where a project's sources live.

    Prefers the git work tree the project is checked out in, then the declared
    repository, then a homepage on a known code host.
    """
    work_tree = _find_git_work_tree(working_dir.resolve())
    if work_tree is not None:
        try:
            remote = runner.run(work_tree, "git", "remote", "get-url", "origin")
            head = runner.run(work_tree, "git", "rev-parse", "HEAD")
        except ToolInvocationFailed:
            log.debug("vcs.git_unavailable", path=str(work_tree))
        else:
            if remote.ok and head.ok:
                detected = parse_vcs_url(remote.stdout.strip())
                rel = working_dir.resolve().relative_to(work_tree).as_posix()
                return VcsInfo(
                    VcsType.GIT,
                    detected.url,
                    head.stdout.strip(),
                    "" if rel == "." else rel,
                )

    if not vcs.is_empty:
        return vcs
    if any(host in homepage_url for host in _KNOWN_GIT_HOSTS):
        return parse_vcs_url(homepage_url)
    return VcsInfo.EMPTY


def parse_author_string(author: str) -> str | None:
    """Extract the name from ``"Name <mail> (url)"``; None when there is no name."""
    match = _AUTHOR_RE.match(author)
    name = match.group(1).strip() if match else ""
    return name or None
