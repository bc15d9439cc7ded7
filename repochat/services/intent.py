"""Rule-based detection of repository questions in free-form chat messages.

The rules are intentionally simple string and regex checks evaluated in a
fixed order. Keyword checks run on lowercased, accent-folded text so that
"résume" and "resume" are treated alike, while extracted values (commit
tokens, branch names, hashes) are taken from the text before folding.
"""

import re
import unicodedata
from typing import List, Optional

from repochat.schemas.intent import (
    Intent,
    LatestCommitIntent,
    ShaLookupIntent,
    SpecificCommitIntent,
    UnresolvedCommitIntent,
)

REPOSITORY_KEYWORDS = ("github", "commit", "depot", "repo", "branche", "branch")

# First matching alternative wins
COMMIT_TOKEN_PATTERNS = (
    re.compile(r"commit\s+[\"'](.*?)[\"']"),
    re.compile(r"commit\s+(\S+)"),
    re.compile(r"le\s+commit\s+[\"'](.*?)[\"']"),
    re.compile(r"le\s+commit\s+(\S+)"),
)

BRANCH_PATTERNS = (
    re.compile(r"\bbranch\s+(\w[\w./-]*)", re.IGNORECASE),
    re.compile(r"\bbranche\s+(\w[\w./-]*)", re.IGNORECASE),
)

SHA_PATTERN = re.compile(r"\b[0-9a-fA-F]{7,40}\b")


def fold(text: str) -> str:
    """Lowercase and strip diacritics"""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def mentions_repository(text: str) -> bool:
    folded = fold(text)
    return any(keyword in folded for keyword in REPOSITORY_KEYWORDS)


def extract_commit_token(text: str) -> Optional[str]:
    lowered = text.lower()
    for pattern in COMMIT_TOKEN_PATTERNS:
        match = pattern.search(lowered)
        if match and match.group(1):
            return match.group(1)
    return None


def extract_branch(text: str) -> Optional[str]:
    for pattern in BRANCH_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).rstrip(".")
    return None


def extract_sha(text: str) -> Optional[str]:
    match = SHA_PATTERN.search(text)
    return match.group(0) if match else None


class IntentExtractor:
    """Turns a chat message into the list of repository lookups it asks for"""

    def extract(self, text: str) -> List[Intent]:
        intents: List[Intent] = []

        keyword_intent = self._keyword_intent(text)
        if keyword_intent is not None:
            intents.append(keyword_intent)

        sha = extract_sha(text)
        if sha:
            intents.append(ShaLookupIntent(sha=sha))

        return intents

    def _keyword_intent(self, text: str) -> Optional[Intent]:
        if not mentions_repository(text):
            return None

        folded = fold(text)
        if "resume" not in folded:
            return None

        branch = extract_branch(text)
        if "dernier commit" in folded:
            return LatestCommitIntent(branch=branch)

        if "commit" in folded:
            query = extract_commit_token(text)
            if query is None:
                return UnresolvedCommitIntent()
            return SpecificCommitIntent(query=query, branch=branch)

        return None
