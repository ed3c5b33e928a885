"""Keep the .env file out of git."""

import logging
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class GitignoreOutcome(str, Enum):
    NOT_A_REPO = "not_a_repo"
    CREATED = "created"
    ADDED = "added"
    PRESENT = "present"


def ensure_gitignored(repo_root: Path, entry: str = ".env") -> GitignoreOutcome:
    """
    Add an exact-line entry to .gitignore in a git work tree.

    Existing content is only ever appended to.
    """
    if not (repo_root / ".git").exists():
        return GitignoreOutcome.NOT_A_REPO

    gitignore = repo_root / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text(f"# Environment variables\n{entry}\n", encoding="utf-8")
        logger.info("Created %s", gitignore)
        return GitignoreOutcome.CREATED

    content = gitignore.read_text(encoding="utf-8", errors="replace")
    if entry in (line.strip() for line in content.splitlines()):
        return GitignoreOutcome.PRESENT

    prefix = "\n" if content and not content.endswith("\n") else ""
    with open(gitignore, "a", encoding="utf-8") as f:
        f.write(f"{prefix}\n# Environment variables\n{entry}\n")
    logger.info("Added %s to %s", entry, gitignore)
    return GitignoreOutcome.ADDED
