"""
Data models for a single review run.
Nothing here is persisted; every object lives for one invocation.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# Run status strings
NO_CHANGE = "no change"
COMMENTS_POSTED = "comments posted"

# Per-file outcome statuses
COMMENTED = "commented"
NO_FINDINGS = "no_findings"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class CommitRange:
    """The two endpoints being compared in a repository."""
    owner: str
    repo: str
    base: str
    head: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def basehead(self) -> str:
        """Three-dot notation used by the compare endpoint."""
        return f"{self.base}...{self.head}"


@dataclass(frozen=True)
class ChangedFile:
    """A file touched in the compared range."""
    filename: str
    patch: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_api(cls, file_info: Dict[str, Any]) -> "ChangedFile":
        """Build from an entry of the compare API's ``files`` array."""
        return cls(filename=file_info["filename"], patch=file_info.get("patch"))

    @property
    def patch_text(self) -> str:
        return self.patch or ""


@dataclass
class ChangeSet:
    """
    Result of fetching a commit range.

    ``latest_commit_files`` holds the filenames touched by the most recent
    commit, or None when the range spans fewer than two commits.
    """
    files: List[ChangedFile]
    commits: List[str]
    latest_commit_files: Optional[List[str]] = None

    @property
    def latest_commit(self) -> Optional[str]:
        return self.commits[-1] if self.commits else None

    @property
    def is_incremental(self) -> bool:
        return self.latest_commit_files is not None


@dataclass(frozen=True)
class ReviewResult:
    """Model feedback for one patch."""
    has_findings: bool
    body: str = ""

    @classmethod
    def from_text(cls, text: Optional[str]) -> "ReviewResult":
        """Empty or whitespace-only text means there is nothing to comment."""
        if not text or not text.strip():
            return cls(has_findings=False, body="")
        return cls(has_findings=True, body=text)


@dataclass(frozen=True)
class FileOutcome:
    filename: str
    status: str
    detail: str = ""


@dataclass
class ReviewRunSummary:
    """What happened during a run, in file order."""
    status: str
    outcomes: List[FileOutcome] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def commented(self) -> List[str]:
        return [outcome.filename for outcome in self.outcomes if outcome.status == COMMENTED]

    @property
    def failed(self) -> List[str]:
        return [outcome.filename for outcome in self.outcomes if outcome.status == FAILED]
