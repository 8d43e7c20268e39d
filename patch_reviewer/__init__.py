"""
Patch reviewer

Reviews the patches of a pull request with a language model and posts the
feedback as inline review comments.
"""

__version__ = "0.1.0"

from patch_reviewer.review_pr import review_pull_request, run_review

__all__ = ["review_pull_request", "run_review"]
