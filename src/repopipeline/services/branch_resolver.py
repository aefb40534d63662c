"""Effective branch resolution for RepoPipeline."""

from typing import Any, Iterable, Optional, Sequence

from repopipeline.constants import ALLOWED_BRANCHES, SCM_REMOTE_PREFIX, WEBHOOK_REF_PREFIX
from repopipeline.models import BranchDecision


class BranchResolver:
    """Picks the single branch of a run from webhook, SCM and parameter signals.

    Precedence is fixed: a webhook ref wins over the branch reported by the
    source-control checkout, which wins over the user fallback parameter.
    A branch outside ``allowed_branches`` is not an error; the decision is
    returned with ``allowed=False`` and the caller ends the run as not built.
    """

    def __init__(self, logger, allowed_branches: Sequence[str] = ALLOWED_BRANCHES):
        self.logger = logger
        self.allowed_branches = tuple(allowed_branches)

    @staticmethod
    def strip_prefixes(value: Optional[str], prefixes: Iterable[str]) -> str:
        """Removes leading prefixes until none of them matches."""
        prefixes = tuple(prefixes)
        result = (value or "").strip()
        previous = None
        while result != previous:
            previous = result
            for prefix in prefixes:
                while result.startswith(prefix):
                    result = result[len(prefix):]
        return result

    def normalize_webhook_ref(self, ref: Optional[str]) -> str:
        return self.strip_prefixes(ref, (WEBHOOK_REF_PREFIX,))

    def normalize_scm_branch(self, branch: Optional[str]) -> str:
        return self.strip_prefixes(branch, (SCM_REMOTE_PREFIX, WEBHOOK_REF_PREFIX))

    @staticmethod
    def ref_from_payload(payload: Any) -> Optional[str]:
        """Extracts the pushed ref from a push webhook payload."""
        if not isinstance(payload, dict):
            return None
        ref = payload.get("ref")
        if isinstance(ref, str) and ref.strip():
            return ref
        return None

    def resolve(
        self,
        webhook_ref: Optional[str] = None,
        scm_branch: Optional[str] = None,
        fallback: Optional[str] = None,
    ) -> BranchDecision:
        candidates = (
            ("webhook", self.normalize_webhook_ref(webhook_ref)),
            ("scm", self.normalize_scm_branch(scm_branch)),
            ("parameter", (fallback or "").strip()),
        )

        for source, branch in candidates:
            if not branch:
                continue

            allowed = branch in self.allowed_branches
            if allowed:
                self.logger.info("Effective branch '%s' (from %s signal).", branch, source)
            else:
                self.logger.warning(
                    "Branch '%s' (from %s signal) is not in the allowed list: %s.",
                    branch,
                    source,
                    ", ".join(self.allowed_branches),
                )
            return BranchDecision(branch=branch, source=source, allowed=allowed)

        self.logger.warning("No branch signal found in webhook, SCM or fallback parameter.")
        return BranchDecision(branch="", source="none", allowed=False)
