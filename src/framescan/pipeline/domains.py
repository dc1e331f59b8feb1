"""Keyword-based domain inference for entry points that take no explicit domain.

Only the public text scan and tiered image scans without a domain use this.
The result is always low confidence, and reports built from it are flagged
domain_inferred.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from framescan.scoring.models import Domain

logger = logging.getLogger(__name__)

_TEXT_RULES: tuple[tuple[Domain, tuple[str, ...]], ...] = (
    (Domain.SALES_EMAIL, ("sales", "price", "pricing", "offer", "proposal", "discount")),
    (Domain.DATING_MESSAGE, ("date", "dating", "meet up", "coffee", "drinks")),
    (Domain.LEADERSHIP_UPDATE, ("team", "project", "update", "quarter", "roadmap")),
    (Domain.SOCIAL_POST, ("linkedin", "followers", "tweet", "hashtag")),
)

_IMAGE_RULES: tuple[tuple[Domain, tuple[str, ...]], ...] = (
    (Domain.TEAM_PHOTO, ("team", "group", "staff")),
    (Domain.LANDING_PAGE_HERO, ("landing", "hero", "homepage", "website")),
    (Domain.SOCIAL_POST_IMAGE, ("social", "post", "instagram")),
)


@dataclass(frozen=True)
class DomainInference:
    domain: Domain
    confidence: str = "low"
    matched_keyword: str | None = None


def _infer(
    text: str,
    rules: tuple[tuple[Domain, tuple[str, ...]], ...],
    default: Domain,
) -> DomainInference:
    lowered = text.lower()
    for domain, keywords in rules:
        for keyword in keywords:
            if re.search(rf"\b{re.escape(keyword)}\b", lowered):
                logger.warning(
                    "Inferred domain %s from keyword %r (low confidence)", domain.value, keyword
                )
                return DomainInference(domain=domain, matched_keyword=keyword)
    logger.warning("No domain keyword matched, defaulting to %s (low confidence)", default.value)
    return DomainInference(domain=default)


def infer_text_domain(content: str) -> DomainInference:
    return _infer(content, _TEXT_RULES, Domain.GENERIC)


def infer_image_domain(context_label: str | None) -> DomainInference:
    return _infer(context_label or "", _IMAGE_RULES, Domain.PROFILE_PHOTO)
