from dataclasses import dataclass, field


@dataclass(frozen=True)
class FileRecord:
    """One indexed text file: repo-relative path, decoded content and byte size"""
    path: str
    content: str
    size: int = 0


@dataclass(frozen=True)
class TreeEntry:
    """A candidate entry from a repository tree listing"""
    path: str
    type: str = 'blob'
    size: int = 0
    url: str = ''

    @property
    def is_dir(self):
        return self.type != 'blob'


@dataclass
class IngestionResult:
    files: list = field(default_factory=list)
    failed: list = field(default_factory=list)

    @property
    def skipped(self):
        return len(self.failed)


@dataclass
class RepoMetadata:
    name: str
    owner: str
    description: str
    stars: int
    default_branch: str
    updated_at: str = ''
    last_commit_hash: str = 'unknown'
