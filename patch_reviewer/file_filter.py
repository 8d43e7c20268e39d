#!/usr/bin/env python3
"""
File filtering module for the patch reviewer.
Narrows a fetched change set to the files that should be reviewed.
"""

from typing import FrozenSet, Iterable, List, Optional

from patch_reviewer.logging_config import get_logger, with_context
from patch_reviewer.models import ChangedFile, ChangeSet

# Set up logger
logger = get_logger(__name__)


def parse_ignore_list(*raw_values: Optional[str]) -> FrozenSet[str]:
    """
    Parse newline-delimited ignore list values into a set of filenames.

    Several raw values may be given (for example the ``IGNORE`` and
    ``ignore`` environment entries); their entries are merged.
    Blank entries are dropped.
    """
    entries = set()
    for raw in raw_values:
        if not raw:
            continue
        for line in raw.split("\n"):
            name = line.strip()
            if name:
                entries.add(name)
    return frozenset(entries)


def unique_files(files: Iterable[ChangedFile]) -> List[ChangedFile]:
    """Drop repeated filenames, keeping the first occurrence and the original order."""
    seen = set()
    result = []
    for changed_file in files:
        if changed_file.filename in seen:
            continue
        seen.add(changed_file.filename)
        result.append(changed_file)
    return result


class ChangeFilter:
    """
    Selects the files of a change set that should be reviewed.

    For ranges of two or more commits only files touched by the most recent
    commit are kept, minus the ignore list. Single-commit ranges are passed
    through without ignore-list filtering.
    """

    def __init__(self, ignore_list: Iterable[str] = ()):
        """
        Initialize the ChangeFilter.

        Args:
            ignore_list: Filenames excluded from incremental reviews
        """
        self.ignore_list = frozenset(ignore_list)

        logger.debug("ChangeFilter initialized",
                     context={"ignore_list": sorted(self.ignore_list)})

    def should_exclude_file(self, changed_file: ChangedFile,
                            allowed: Optional[FrozenSet[str]]) -> bool:
        """
        Determine if a file should be dropped from an incremental review.

        Args:
            changed_file: The file from the full comparison
            allowed: Filenames touched by the most recent commit

        Returns:
            True if the file should be excluded, False otherwise
        """
        if allowed is None:
            return False

        if changed_file.filename not in allowed:
            logger.debug(f"Excluding file not touched by latest commit: {changed_file.filename}")
            return True

        if changed_file.filename in self.ignore_list:
            logger.debug(f"Excluding ignored file: {changed_file.filename}")
            return True

        return False

    @with_context
    def filter_changes(self, change_set: ChangeSet) -> List[ChangedFile]:
        """
        Filter the files of a change set.

        Args:
            change_set: Files and commits fetched for the range

        Returns:
            Files to review, without duplicates, in their original order
        """
        allowed = None
        if change_set.is_incremental:
            allowed = frozenset(change_set.latest_commit_files)

        original_count = len(change_set.files)
        filtered_files = unique_files(
            changed_file for changed_file in change_set.files
            if not self.should_exclude_file(changed_file, allowed)
        )
        excluded_count = original_count - len(filtered_files)

        if excluded_count > 0:
            logger.info(f"Excluded {excluded_count} files from review",
                        context={"original_count": original_count,
                                 "filtered_count": len(filtered_files),
                                 "incremental": change_set.is_incremental})

        return filtered_files
