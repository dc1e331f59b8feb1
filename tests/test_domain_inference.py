"""Tests for keyword-based domain inference."""

from __future__ import annotations

import pytest

from framescan.pipeline.domains import infer_image_domain, infer_text_domain
from framescan.scoring.models import Domain


class TestTextInference:
    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            ("Attached is our pricing proposal for Q3", Domain.SALES_EMAIL),
            ("Would you like to grab coffee on Saturday?", Domain.DATING_MESSAGE),
            ("Quick update on the project roadmap for the team", Domain.LEADERSHIP_UPDATE),
            ("Thanks to my 10k followers on LinkedIn", Domain.SOCIAL_POST),
            ("Hello there, how have you been lately?", Domain.GENERIC),
        ],
    )
    def test_keyword_rules(self, content: str, expected: Domain) -> None:
        assert infer_text_domain(content).domain == expected

    def test_rules_apply_in_order(self) -> None:
        inference = infer_text_domain("Team update: new pricing starts Monday")

        assert inference.domain == Domain.SALES_EMAIL
        assert inference.matched_keyword == "pricing"

    def test_keywords_match_whole_words_only(self) -> None:
        # "update" contains "date" but is not a dating cue
        assert infer_text_domain("Status update for everyone").domain == Domain.LEADERSHIP_UPDATE
        assert infer_text_domain("I updated the candidate list").domain == Domain.GENERIC

    def test_inference_is_always_low_confidence(self) -> None:
        assert infer_text_domain("Attached is our proposal").confidence == "low"
        assert infer_text_domain("nothing to see").confidence == "low"
        assert infer_text_domain("nothing to see").matched_keyword is None


class TestImageInference:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Our sales team at the offsite", Domain.TEAM_PHOTO),
            ("Hero image for the homepage", Domain.LANDING_PAGE_HERO),
            ("Instagram post for the launch", Domain.SOCIAL_POST_IMAGE),
            ("Headshot for recruiters", Domain.PROFILE_PHOTO),
            (None, Domain.PROFILE_PHOTO),
        ],
    )
    def test_keyword_rules(self, label: str | None, expected: Domain) -> None:
        assert infer_image_domain(label).domain == expected
