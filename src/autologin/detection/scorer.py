"""Scoring heuristics that rank DOM candidates for each login field role.

Scores are plain integers. Attribute matches add +100 to +500, document
position relative to already chosen fields adds +50 to +200, and
disqualifiers subtract between 100 and 5000 points. Disqualified candidates
stay in the ranking (so ordering remains deterministic and inspectable) but
can never reach :data:`MINIMUM_SCORE`, which is required for selection.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.models import Candidate, FieldRole, ScoredCandidate
from ..core.session import same_element

MINIMUM_SCORE = 100

HIDDEN_PENALTY = -5000
DISABLED_PENALTY = -5000
ZERO_SIZE_PENALTY = -3000
HIDDEN_TYPE_PENALTY = -5000
CONFLICTING_TYPE_PENALTY = -5000
CONFLICTING_NAME_PENALTY = -1000
UNLIKELY_CONTROL_PENALTY = -500

USERNAME_TERMS = ("username", "user", "userid", "user_id", "user-id", "login", "loginid", "email", "e-mail", "mail", "account", "uid")
PASSWORD_TERMS = ("password", "passwd", "pass", "pwd", "passphrase", "pin", "secret")
DOMAIN_TERMS = ("domain", "tenant", "organization", "organisation", "org", "company", "corp", "realm", "authority")
SUBMIT_TERMS = ("login", "log in", "log-in", "log on", "logon", "signin", "sign in", "sign-in", "submit", "continue", "next", "enter", "go", "connect")

_USERNAME_EXACT = frozenset(("username", "user", "userid", "user_id", "login", "loginid", "login_id", "email", "uid", "account"))
_PASSWORD_EXACT = frozenset(("password", "passwd", "pass", "pwd", "passphrase"))
_DOMAIN_EXACT = frozenset(("domain", "tenant", "organization", "org", "company", "realm", "authority"))

_PASSWORD_LIKE = re.compile(r"(password|passwd|pwd|\bpass\b|passphrase)")
_USER_LIKE = re.compile(r"(user|email|e-mail|login|account)")
_DOMAIN_LIKE = re.compile(r"(domain|tenant|organi[sz]ation|\borg\b|company|realm|authority)")
_SEARCH_LIKE = re.compile(r"(search|query|filter|newsletter|subscribe|coupon|promo)")
_CONFIRM_LIKE = re.compile(r"(confirm|repeat|retype|again|verify|new[-_ ]?pass)")
_SUBMIT_NEGATIVE = re.compile(
    r"(register|sign ?up|create account|forgot|reset|cancel|back|close|help|search|show|toggle|reveal|language)"
)
_PLACEHOLDER_OPTION = re.compile(r"(select|choose|--)")
_DOMAIN_OPTION = re.compile(r"(\.local|\.com|\.org|\.net|domain|tenant|corp)")

_TEXT_LIKE_TYPES = frozenset(("", "text", "email", "tel"))
_SUBMIT_TAGS = frozenset(("button", "input", "a", "div", "span"))


def _term_in(value: str, terms: Iterable[str]) -> bool:
    return any(term in value for term in terms)


@dataclass(frozen=True)
class Anchors:
    """Already selected candidates used for positional signals."""

    username: Optional[Candidate] = None
    password: Optional[Candidate] = None

    @classmethod
    def from_mapping(cls, selected: Mapping[FieldRole, Candidate]) -> "Anchors":
        return cls(
            username=selected.get(FieldRole.USERNAME),
            password=selected.get(FieldRole.PASSWORD),
        )


class ElementScorer:
    """Pure, deterministic scoring of a single candidate for a single role."""

    def score(self, candidate: Candidate, role: FieldRole, anchors: Optional[Anchors] = None) -> int:
        anchors = anchors or Anchors()
        score = self._disqualifiers(candidate)
        if role is FieldRole.USERNAME:
            score += self._score_username(candidate, anchors)
        elif role is FieldRole.PASSWORD:
            score += self._score_password(candidate, anchors)
        elif role is FieldRole.DOMAIN:
            score += self._score_domain(candidate)
        else:
            score += self._score_submit(candidate, anchors)
        return score

    def rank(
        self,
        candidates: Sequence[Candidate],
        role: FieldRole,
        anchors: Optional[Anchors] = None,
    ) -> List[ScoredCandidate]:
        """Orders candidates by score, ties broken by document order."""

        scored = [ScoredCandidate(candidate, self.score(candidate, role, anchors)) for candidate in candidates]
        return sorted(scored, key=lambda item: (-item.score, item.candidate.order))

    # ------------------------------------------------------------------
    # Role specific signals
    # ------------------------------------------------------------------
    @staticmethod
    def _disqualifiers(candidate: Candidate) -> int:
        penalty = 0
        if not candidate.displayed:
            penalty += HIDDEN_PENALTY
        if not candidate.enabled:
            penalty += DISABLED_PENALTY
        if candidate.zero_size:
            penalty += ZERO_SIZE_PENALTY
        if candidate.type == "hidden":
            penalty += HIDDEN_TYPE_PENALTY
        return penalty

    def _score_username(self, candidate: Candidate, anchors: Anchors) -> int:
        score = 0
        if candidate.tag == "input":
            if candidate.type == "email":
                score += 300
            elif candidate.type in _TEXT_LIKE_TYPES:
                score += 100
            elif candidate.type == "password":
                score += CONFLICTING_TYPE_PENALTY
            else:
                score += UNLIKELY_CONTROL_PENALTY
        elif candidate.tag == "select":
            if _USER_LIKE.search(f"{candidate.id} {candidate.name} {candidate.class_name}"):
                score += 100
            else:
                score += -200
        else:
            score += UNLIKELY_CONTROL_PENALTY

        if candidate.autocomplete in ("username", "email"):
            score += 400
        score += self._keyword_signals(candidate, USERNAME_TERMS, _USERNAME_EXACT)

        attributes = candidate.identifying_text
        if _PASSWORD_LIKE.search(attributes):
            score += CONFLICTING_NAME_PENALTY
        if _SEARCH_LIKE.search(attributes):
            score += UNLIKELY_CONTROL_PENALTY
        if _DOMAIN_LIKE.search(attributes) and not _USER_LIKE.search(attributes):
            score -= 400

        password = anchors.password
        if password is not None and candidate.order < password.order:
            score += 200 if password.order - candidate.order <= 3 else 100
        return score

    def _score_password(self, candidate: Candidate, anchors: Anchors) -> int:
        score = 0
        if candidate.tag != "input":
            return score + CONFLICTING_TYPE_PENALTY
        if candidate.type == "password":
            score += 500
        elif candidate.type in ("", "text"):
            score -= 100
        else:
            score += CONFLICTING_TYPE_PENALTY

        if candidate.autocomplete == "current-password":
            score += 300
        elif candidate.autocomplete == "new-password":
            score -= 200
        score += self._keyword_signals(candidate, PASSWORD_TERMS, _PASSWORD_EXACT)

        attributes = candidate.identifying_text
        if _CONFIRM_LIKE.search(attributes):
            score -= 300
        if _USER_LIKE.search(attributes) and not _PASSWORD_LIKE.search(attributes):
            score += CONFLICTING_NAME_PENALTY
        if _SEARCH_LIKE.search(attributes) or _DOMAIN_LIKE.search(attributes):
            score += UNLIKELY_CONTROL_PENALTY
        if candidate.type != "password" and not _PASSWORD_LIKE.search(attributes):
            score -= 400

        username = anchors.username
        if username is not None and candidate.order > username.order:
            score += 150
        return score

    def _score_domain(self, candidate: Candidate) -> int:
        score = 0
        if candidate.tag == "select":
            score += 100
            if 2 <= candidate.option_count <= 50:
                score += 100
                options = [text for text in candidate.option_texts if text and not _PLACEHOLDER_OPTION.search(text)]
                if any(_DOMAIN_OPTION.search(text) for text in options):
                    score += 100
        elif candidate.tag == "input":
            if candidate.type == "password":
                score += CONFLICTING_TYPE_PENALTY
            elif candidate.type not in _TEXT_LIKE_TYPES:
                score += UNLIKELY_CONTROL_PENALTY
        else:
            score += UNLIKELY_CONTROL_PENALTY

        keyword_score = self._keyword_signals(candidate, DOMAIN_TERMS, _DOMAIN_EXACT)
        score += keyword_score
        attributes = candidate.identifying_text
        if _PASSWORD_LIKE.search(attributes) or (_USER_LIKE.search(attributes) and not keyword_score):
            score += CONFLICTING_NAME_PENALTY
        if candidate.tag == "input" and not keyword_score:
            score -= 300
        return score

    def _score_submit(self, candidate: Candidate, anchors: Anchors) -> int:
        score = 0
        tag = candidate.tag
        role_is_button = candidate.class_name and "btn" in candidate.class_name
        if tag == "button":
            score += 150
            if candidate.type in ("", "submit"):
                score += 350 if candidate.type == "submit" else 100
            elif candidate.type == "reset":
                score += CONFLICTING_TYPE_PENALTY
        elif tag == "input":
            if candidate.type == "submit":
                score += 500
            elif candidate.type in ("button", "image"):
                score += 100
            elif candidate.type == "reset":
                score += CONFLICTING_TYPE_PENALTY
            else:
                score += CONFLICTING_TYPE_PENALTY
        elif tag in _SUBMIT_TAGS:
            score += 50 if role_is_button else 0
        else:
            score += UNLIKELY_CONTROL_PENALTY

        label = " ".join(part for part in (candidate.text, candidate.value, candidate.aria_label) if part)
        if _term_in(label, SUBMIT_TERMS) or _term_in(f"{candidate.id} {candidate.name}", SUBMIT_TERMS):
            score += 250
        if _SUBMIT_NEGATIVE.search(f"{label} {candidate.identifying_text}"):
            score -= 800

        password = anchors.password
        if password is not None:
            score += 200 if candidate.order > password.order else 50
        return score

    @staticmethod
    def _keyword_signals(candidate: Candidate, terms: Sequence[str], exact: frozenset) -> int:
        score = 0
        if candidate.id in exact or candidate.name in exact:
            score += 350
        elif _term_in(candidate.id, terms) or _term_in(candidate.name, terms):
            score += 250
        if _term_in(candidate.placeholder, terms) or _term_in(candidate.aria_label, terms):
            score += 150
        return score


ROLE_PRIORITY = (FieldRole.PASSWORD, FieldRole.USERNAME, FieldRole.DOMAIN, FieldRole.SUBMIT)


def best_selectable(ranking: Sequence[ScoredCandidate], taken: Iterable[Candidate] = ()) -> Optional[ScoredCandidate]:
    """First candidate at or above :data:`MINIMUM_SCORE` not aliasing ``taken``."""

    taken_list = list(taken)
    for item in ranking:
        if item.score < MINIMUM_SCORE:
            return None
        if any(same_element(item.candidate.element, other.element) for other in taken_list):
            continue
        return item
    return None


def reconcile(rankings: Mapping[FieldRole, Sequence[ScoredCandidate]]) -> Dict[FieldRole, ScoredCandidate]:
    """Assigns each role a distinct element, falling back to next-best choices."""

    assigned: Dict[FieldRole, ScoredCandidate] = {}
    for role in ROLE_PRIORITY:
        ranking = rankings.get(role)
        if not ranking:
            continue
        choice = best_selectable(ranking, (item.candidate for item in assigned.values()))
        if choice is not None:
            assigned[role] = choice
    return assigned


def rank_roles(
    scorer: ElementScorer,
    candidates: Sequence[Candidate],
    roles: Sequence[FieldRole],
) -> Dict[FieldRole, ScoredCandidate]:
    """Ranks ``candidates`` for every role in ``roles`` and reconciles them.

    The password field is ranked first because it anchors the positional
    signals of the username and submit roles.
    """

    rankings: Dict[FieldRole, List[ScoredCandidate]] = {}
    anchors = Anchors()
    if FieldRole.PASSWORD in roles:
        rankings[FieldRole.PASSWORD] = scorer.rank(candidates, FieldRole.PASSWORD)
        best_password = best_selectable(rankings[FieldRole.PASSWORD])
        if best_password is not None:
            anchors = Anchors(password=best_password.candidate)
    if FieldRole.USERNAME in roles:
        rankings[FieldRole.USERNAME] = scorer.rank(candidates, FieldRole.USERNAME, anchors)
        taken = [anchors.password] if anchors.password is not None else []
        best_username = best_selectable(rankings[FieldRole.USERNAME], taken)
        if best_username is not None:
            anchors = Anchors(username=best_username.candidate, password=anchors.password)
    if FieldRole.DOMAIN in roles:
        rankings[FieldRole.DOMAIN] = scorer.rank(candidates, FieldRole.DOMAIN)
    if FieldRole.SUBMIT in roles:
        rankings[FieldRole.SUBMIT] = scorer.rank(candidates, FieldRole.SUBMIT, anchors)
    return reconcile(rankings)
