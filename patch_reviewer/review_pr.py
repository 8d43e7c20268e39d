#!/usr/bin/env python3
"""
Main script for the patch reviewer.
Fetches the changes of a pull request, asks a language model to review each
file's patch, and posts the feedback as inline review comments.
"""

import argparse
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional

from dotenv import load_dotenv

from patch_reviewer.config import DEFAULT_LANGUAGE, Settings, load_config
from patch_reviewer.custom_exceptions import MissingConfigurationError, PatchReviewerError
from patch_reviewer.file_filter import ChangeFilter
from patch_reviewer.github_client import GitHubClient
from patch_reviewer.logging_config import get_logger, setup_logging, with_context
from patch_reviewer.model_adapters import ModelAdapter
from patch_reviewer.models import (
    COMMENTED,
    COMMENTS_POSTED,
    FAILED,
    NO_CHANGE,
    NO_FINDINGS,
    SKIPPED,
    ChangedFile,
    ChangeSet,
    CommitRange,
    FileOutcome,
    ReviewResult,
    ReviewRunSummary,
)

logger = get_logger(__name__)

PROMPT_TEMPLATE = (
    "Answer me in {language}.\n"
    "Below is a code patch, please help me do a brief code review on it.\n"
    "Summarize what changes the code patch has.\n"
    "Any bug risks and/or improvement suggestions are welcome:\n"
)


@with_context
def fetch_changes(github: GitHubClient, commit_range: CommitRange) -> ChangeSet:
    """
    Fetch the changed files and commits of a range.

    When the range spans two or more commits, a second comparison between the
    last two commits records which files the most recent commit touched.
    API failures propagate to the caller.
    """
    data = github.compare_commits(commit_range.owner, commit_range.repo,
                                  commit_range.base, commit_range.head)
    files = [ChangedFile.from_api(file_info) for file_info in data.get("files") or []]
    commits = [commit["sha"] for commit in data.get("commits") or []]
    logger.info(f"Found {len(files)} changed files across {len(commits)} commits")

    if not commits:
        # Nothing to anchor comments on
        return ChangeSet(files=[], commits=[])

    latest_commit_files = None
    if len(commits) >= 2:
        latest = github.compare_commits(commit_range.owner, commit_range.repo,
                                        commits[-2], commits[-1])
        latest_commit_files = [file_info["filename"] for file_info in latest.get("files") or []]
        logger.info(f"Latest commit {commits[-1]} touched {len(latest_commit_files)} files")

    return ChangeSet(files=files, commits=commits, latest_commit_files=latest_commit_files)


def generate_prompt(patch: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Build the review prompt with the patch appended verbatim."""
    return f"{PROMPT_TEMPLATE.format(language=language)}\n{patch}"


def review_patch(model: ModelAdapter, patch: str, language: str = DEFAULT_LANGUAGE) -> ReviewResult:
    """Ask the model to review one patch."""
    if not patch:
        return ReviewResult(has_findings=False)
    prompt = generate_prompt(patch, language)
    return ReviewResult.from_text(model.generate_response(prompt))


def comment_position(patch: str) -> int:
    """Position of the last line of the patch within the diff hunk."""
    return len(patch.split("\n")) - 1


def skip_reason(changed_file: ChangedFile, max_patch_length: Optional[int]) -> Optional[str]:
    patch = changed_file.patch_text
    if not patch:
        return "empty patch"
    if max_patch_length is not None and len(patch) > max_patch_length:
        return "diff is too large"
    return None


def review_file(github: GitHubClient, model: ModelAdapter, commit_range: CommitRange,
                pull_number: int, commit_id: str, changed_file: ChangedFile,
                max_patch_length: Optional[int] = None,
                language: str = DEFAULT_LANGUAGE) -> FileOutcome:
    """
    Review one file and post the feedback.

    Errors are logged with the filename and reported as a failed outcome so
    the remaining files are still processed.
    """
    filename = changed_file.filename
    reason = skip_reason(changed_file, max_patch_length)
    if reason:
        logger.info(f"{filename} skipped caused by its {reason}",
                    context={"filename": filename, "patch_length": len(changed_file.patch_text)})
        return FileOutcome(filename, SKIPPED, reason)

    patch = changed_file.patch_text
    try:
        result = review_patch(model, patch, language)
        if not result.has_findings:
            logger.info(f"No findings for {filename}")
            return FileOutcome(filename, NO_FINDINGS)

        github.create_review_comment(
            owner=commit_range.owner,
            repo=commit_range.repo,
            pull_number=pull_number,
            commit_id=commit_id,
            path=filename,
            body=result.body,
            position=comment_position(patch),
        )
    except Exception as e:
        logger.error(f"review {filename} failed: {e}",
                     context={"filename": filename, "error_type": type(e).__name__},
                     exc_info=True)
        return FileOutcome(filename, FAILED, str(e))

    return FileOutcome(filename, COMMENTED)


def review_files(github: GitHubClient, model: ModelAdapter, commit_range: CommitRange,
                 pull_number: int, commit_id: str, files: Iterable[ChangedFile],
                 max_patch_length: Optional[int] = None, language: str = DEFAULT_LANGUAGE,
                 concurrency: int = 1) -> List[FileOutcome]:
    """
    Review files one at a time, or through a bounded worker pool when
    ``concurrency`` is above one. Outcomes keep the input order.
    """
    def review_one(changed_file: ChangedFile) -> FileOutcome:
        return review_file(github, model, commit_range, pull_number, commit_id,
                           changed_file, max_patch_length, language)

    files = list(files)
    if concurrency <= 1 or len(files) <= 1:
        return [review_one(changed_file) for changed_file in files]

    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        return list(executor.map(review_one, files))


@with_context
def run_review(github: GitHubClient, model: ModelAdapter, commit_range: CommitRange,
               pull_number: int, max_patch_length: Optional[int] = None,
               ignore_list: Iterable[str] = (), language: str = DEFAULT_LANGUAGE,
               concurrency: int = 1) -> ReviewRunSummary:
    """
    Run the whole review pipeline for one pull request.

    Args:
        github: GitHub client
        model: Model adapter
        commit_range: Refs to compare
        pull_number: Pull request number
        max_patch_length: Skip patches longer than this; None means unbounded
        ignore_list: Filenames excluded from incremental reviews
        language: Language the model answers in
        concurrency: Worker pool size for file reviews

    Returns:
        Summary with status ``"no change"`` or ``"comments posted"``

    Raises:
        GitHubAPIError: If fetching the changes fails
    """
    change_set = fetch_changes(github, commit_range)
    files = ChangeFilter(ignore_list).filter_changes(change_set)

    if not files:
        logger.info("no change found")
        return ReviewRunSummary(status=NO_CHANGE)

    logger.info(f"Reviewing {len(files)} files",
                context={"repo": commit_range.full_name, "pr_number": pull_number,
                         "commit_id": change_set.latest_commit})

    outcomes = review_files(github, model, commit_range, pull_number, change_set.latest_commit,
                            files, max_patch_length, language, concurrency)
    summary = ReviewRunSummary(status=COMMENTS_POSTED, outcomes=outcomes)

    logger.info("Review run finished",
                context={"commented": summary.count(COMMENTED),
                         "no_findings": summary.count(NO_FINDINGS),
                         "skipped": summary.count(SKIPPED),
                         "failed": summary.count(FAILED)})
    return summary


def resolve_commit_range(github: GitHubClient, settings: Settings) -> CommitRange:
    """Use the configured refs, or the pull request's base and head when they are unset."""
    if settings.base and settings.head:
        return settings.commit_range

    logger.info("Base or head commit not set, reading them from the pull request")
    pull = github.get_pull_request(settings.owner, settings.repo, settings.pull_number)
    base = settings.base or (pull.get("base") or {}).get("sha")
    head = settings.head or (pull.get("head") or {}).get("sha")
    if not base:
        raise MissingConfigurationError("GITHUB_BASE_COMMIT")
    if not head:
        raise MissingConfigurationError("GITHUB_HEAD_COMMIT")
    return CommitRange(owner=settings.owner, repo=settings.repo, base=base, head=head)


def review_pull_request(github: GitHubClient, model: ModelAdapter, settings: Settings) -> bool:
    """
    Run the review and report whether it completed.

    Returns:
        True on success (including "no change"), False if the run failed
    """
    try:
        commit_range = resolve_commit_range(github, settings)
        summary = run_review(
            github,
            model,
            commit_range,
            settings.pull_number,
            max_patch_length=settings.max_patch_length,
            ignore_list=settings.ignore_list,
            language=settings.language,
            concurrency=settings.concurrency,
        )
    except PatchReviewerError as e:
        logger.error(f"Error: {e.message}", context={"error_code": e.error_code}, exc_info=True)
        return False
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        return False

    if summary.status == COMMENTS_POSTED:
        logger.info("Review comments posted successfully!",
                    context={"files": len(summary.outcomes), "failed": summary.failed})
    return True


def main(argv: Optional[List[str]] = None) -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Review pull request patches with a language model")
    parser.add_argument("-c", "--config", help="Path to a YAML settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging(log_level="DEBUG" if args.verbose else os.environ.get("LOG_LEVEL", "INFO"))

    logger.info("=========================================================")
    logger.info("Starting patch review")
    logger.info("=========================================================")

    try:
        file_config = load_config(args.config) if args.config else {}
        settings = Settings.from_env(file_config=file_config)
        github = GitHubClient(settings.github_token, base_url=settings.github_api_url,
                              timeout=settings.request_timeout)
        model = ModelAdapter(settings.model)
    except PatchReviewerError as e:
        logger.error(f"Configuration error: {e.message}", context={"error_code": e.error_code})
        sys.exit(1)

    success = review_pull_request(github, model, settings)

    if success:
        logger.info("Patch review completed successfully")
    else:
        logger.error("Patch review failed")

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
