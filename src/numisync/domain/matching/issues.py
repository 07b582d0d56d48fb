"""Issue disambiguation: pick the year/mint/variant issue a local record refers to.

Matching first filters by year, then runs an ordered list of independent
narrowing strategies over the year matches. A strategy only runs when the field
it inspects actually varies across the candidates, and matching stops as soon
as exactly one issue survives. Narrowing never prunes the choices shown to a
human: every ``USER_PICK`` offers the full year-matched set (or every issue
when the year itself did not match).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from numisync.domain.enums import EmptyMintmarkPolicy, MatchOutcome
from numisync.domain.records import record_text, record_year

from .mintmarks import mintmarks_match, normalize_mintmark

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numisync.domain.catalog import Issue
    from numisync.domain.records import LocalRecord

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VaryingFields:
    """Which optional issue attributes differ across a candidate set."""

    mint_mark: bool = False
    comment: bool = False
    unmappable: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class IssueMatch:
    outcome: MatchOutcome
    issue: Issue | None = None
    options: tuple[Issue, ...] = ()
    year_matches: tuple[Issue, ...] = ()
    varying: VaryingFields = field(default_factory=VaryingFields)
    method: str = ""


@dataclass(frozen=True, slots=True)
class IssueMatchOptions:
    empty_mintmark_policy: EmptyMintmarkPolicy = EmptyMintmarkPolicy.NO_MINT_MARK
    pick_from_all_on_year_miss: bool = True


class IssueNarrower(Protocol):
    """One narrowing strategy over year-matched issues."""

    name: str

    def applies(self, varying: VaryingFields) -> bool: ...

    def narrow(self, candidates: Sequence[Issue], record: LocalRecord) -> list[Issue] | None:
        """Return the surviving issues, or ``None`` to leave the set untouched.

        An empty list ends matching and leaves the choice to the user.
        """
        ...


@dataclass(frozen=True, slots=True)
class MintMarkNarrower:
    policy: EmptyMintmarkPolicy = EmptyMintmarkPolicy.NO_MINT_MARK
    name: str = "mintmark"

    def applies(self, varying: VaryingFields) -> bool:
        return varying.mint_mark

    def narrow(self, candidates: Sequence[Issue], record: LocalRecord) -> list[Issue] | None:
        local_mark = record_text(record, "mintmark")
        if not local_mark and self.policy is EmptyMintmarkPolicy.UNKNOWN:
            return []
        return [issue for issue in candidates if mintmarks_match(local_mark, issue.mint_letter)]


@dataclass(frozen=True, slots=True)
class CommentNarrower:
    name: str = "comment"

    def applies(self, varying: VaryingFields) -> bool:
        return varying.comment

    def narrow(self, candidates: Sequence[Issue], record: LocalRecord) -> list[Issue] | None:
        local_type = record_text(record, "type").lower()
        if not local_type:
            return [issue for issue in candidates if not (issue.comment or "").strip()]
        needle = "proof" if local_type == "proof" else local_type
        return [issue for issue in candidates if needle in (issue.comment or "").lower()]


def default_narrowers(
    policy: EmptyMintmarkPolicy = EmptyMintmarkPolicy.NO_MINT_MARK,
) -> tuple[IssueNarrower, ...]:
    return (MintMarkNarrower(policy=policy), CommentNarrower())


def detect_varying_fields(issues: Sequence[Issue]) -> VaryingFields:
    mint_marks = {normalize_mintmark(issue.mint_letter) for issue in issues}
    comments = {(issue.comment or "").strip().lower() for issue in issues}
    unmappable: list[str] = []
    if len({issue.marks for issue in issues}) > 1:
        unmappable.append("marks")
    if len({issue.signatures for issue in issues}) > 1:
        unmappable.append("signatures")
    return VaryingFields(
        mint_mark=len(mint_marks) > 1,
        comment=len(comments) > 1,
        unmappable=tuple(unmappable),
    )


def match_issue(
    record: LocalRecord,
    issues: Sequence[Issue],
    options: IssueMatchOptions | None = None,
    *,
    narrowers: Sequence[IssueNarrower] | None = None,
) -> IssueMatch:
    """Resolve the issue of a catalog type that ``record`` describes."""

    opts = options or IssueMatchOptions()
    all_issues = tuple(issues)
    if not all_issues:
        return IssueMatch(outcome=MatchOutcome.NO_ISSUES)

    year = record_year(record)
    if year is None:
        return IssueMatch(outcome=MatchOutcome.USER_PICK, options=all_issues, method="no_year")

    year_matches = tuple(issue for issue in all_issues if issue.matches_year(year))
    if not year_matches:
        if not opts.pick_from_all_on_year_miss:
            return IssueMatch(outcome=MatchOutcome.NO_MATCH, method="no_year_match")
        return IssueMatch(
            outcome=MatchOutcome.USER_PICK, options=all_issues, method="no_year_match"
        )
    if len(year_matches) == 1:
        return IssueMatch(
            outcome=MatchOutcome.AUTO_MATCHED,
            issue=year_matches[0],
            year_matches=year_matches,
            method="year",
        )

    varying = detect_varying_fields(year_matches)
    if varying.unmappable:
        log.debug("Issues for year %s also vary by %s", year, ", ".join(varying.unmappable))

    strategies = (
        narrowers if narrowers is not None else default_narrowers(opts.empty_mintmark_policy)
    )
    candidates: list[Issue] = list(year_matches)
    applied: list[str] = ["year"]
    for strategy in strategies:
        if not strategy.applies(varying):
            continue
        narrowed = strategy.narrow(candidates, record)
        if narrowed is None:
            continue
        applied.append(strategy.name)
        if not narrowed:
            return IssueMatch(
                outcome=MatchOutcome.USER_PICK,
                options=year_matches,
                year_matches=year_matches,
                varying=varying,
                method="+".join(applied),
            )
        candidates = narrowed
        if len(candidates) == 1:
            break

    if len(candidates) == 1:
        return IssueMatch(
            outcome=MatchOutcome.AUTO_MATCHED,
            issue=candidates[0],
            year_matches=year_matches,
            varying=varying,
            method="+".join(applied),
        )
    return IssueMatch(
        outcome=MatchOutcome.USER_PICK,
        options=year_matches,
        year_matches=year_matches,
        varying=varying,
        method="+".join(applied),
    )
