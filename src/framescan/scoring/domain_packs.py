"""Domain-specific axis weight packs.

Each content domain emphasises a few priority axes. Priority axes carry a
raw weight of 2, every other axis a raw weight of 1, and the vector is
normalized to sum to 1.0. Every axis keeps a strictly positive weight so the
composite stays monotonic in each axis.

Fail-closed: unknown domain raises DomainPackNotFoundError.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from framescan.scoring.models import ALL_AXES, AxisId, Domain, Modality, modality_for_domain

_WEIGHT_SUM_TOLERANCE = 1e-9
PRIORITY_AXIS_WEIGHT = 2.0
BASE_AXIS_WEIGHT = 1.0


class DomainPackNotFoundError(Exception):
    """Raised when no weight pack exists for the requested domain."""


class DomainPack(BaseModel):
    """Domain-specific scoring configuration.

    Contains the priority axes and a weight per axis (sum to 1.0).
    All fields are immutable after construction.
    """

    model_config = ConfigDict(frozen=True)

    domain: Domain = Field(..., description="Content domain this pack applies to")
    modality: Modality
    label: str = Field(..., min_length=1, description="Human-readable domain label")
    priority_axes: tuple[AxisId, ...] = Field(..., description="Axes emphasised for this domain")
    weights: dict[AxisId, float] = Field(
        ..., description="Axis weights (must cover all 9, each > 0, sum to 1.0)"
    )

    @model_validator(mode="after")
    def _validate_weights(self) -> DomainPack:
        """Fail closed: weights cover all 9 axes, are positive, and sum to 1.0."""
        missing = set(ALL_AXES) - set(self.weights.keys())
        if missing:
            missing_names = sorted(a.value for a in missing)
            raise ValueError(f"Weights missing axes: {missing_names}")
        non_positive = sorted(a.value for a, w in self.weights.items() if w <= 0.0)
        if non_positive:
            raise ValueError(f"Weights must be positive: {non_positive}")
        weight_sum = sum(self.weights.values())
        if abs(weight_sum - 1.0) > _WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"Weights must sum to 1.0 (got {weight_sum:.10f})")
        if self.modality != modality_for_domain(self.domain):
            raise ValueError(f"Domain {self.domain.value} is not a {self.modality.value} domain")
        return self

    def weight_for(self, axis_id: AxisId) -> float:
        return self.weights[axis_id]


def _build_weights(priority_axes: tuple[AxisId, ...]) -> dict[AxisId, float]:
    """Build a normalized weight dict covering all 9 axes.

    Args:
        priority_axes: Axes that get PRIORITY_AXIS_WEIGHT before normalization.

    Returns:
        Dict mapping every AxisId to its normalized weight.
    """
    raw = {
        axis: PRIORITY_AXIS_WEIGHT if axis in priority_axes else BASE_AXIS_WEIGHT
        for axis in ALL_AXES
    }
    total = sum(raw.values())
    return {axis: value / total for axis, value in raw.items()}


def _make_pack(domain: Domain, label: str, priority_axes: tuple[AxisId, ...]) -> DomainPack:
    return DomainPack(
        domain=domain,
        modality=modality_for_domain(domain),
        label=label,
        priority_axes=priority_axes,
        weights=_build_weights(priority_axes),
    )


_DOMAIN_PACKS: dict[Domain, DomainPack] = {
    Domain.GENERIC: _make_pack(
        Domain.GENERIC,
        "General text",
        (AxisId.ASSUMPTIVE_STATE, AxisId.BUYER_SELLER_POSITION, AxisId.WIN_WIN_INTEGRITY),
    ),
    Domain.SALES_EMAIL: _make_pack(
        Domain.SALES_EMAIL,
        "Sales email",
        (
            AxisId.BUYER_SELLER_POSITION,
            AxisId.INTERNAL_SALE,
            AxisId.WIN_WIN_INTEGRITY,
            AxisId.PERSUASION_STYLE,
        ),
    ),
    Domain.DATING_MESSAGE: _make_pack(
        Domain.DATING_MESSAGE,
        "Dating message",
        (
            AxisId.PEDESTALIZATION,
            AxisId.SELF_TRUST_VS_PERMISSION,
            AxisId.ASSUMPTIVE_STATE,
            AxisId.WIN_WIN_INTEGRITY,
        ),
    ),
    Domain.LEADERSHIP_UPDATE: _make_pack(
        Domain.LEADERSHIP_UPDATE,
        "Leadership update",
        (
            AxisId.IDENTITY_VS_TACTIC,
            AxisId.FIELD_STRENGTH,
            AxisId.ASSUMPTIVE_STATE,
            AxisId.SELF_TRUST_VS_PERMISSION,
        ),
    ),
    Domain.SOCIAL_POST: _make_pack(
        Domain.SOCIAL_POST,
        "Social post",
        (AxisId.FIELD_STRENGTH, AxisId.IDENTITY_VS_TACTIC, AxisId.PERSUASION_STYLE),
    ),
    Domain.PROFILE_PHOTO: _make_pack(
        Domain.PROFILE_PHOTO,
        "Profile photo",
        (
            AxisId.ASSUMPTIVE_STATE,
            AxisId.PEDESTALIZATION,
            AxisId.FIELD_STRENGTH,
            AxisId.BUYER_SELLER_POSITION,
        ),
    ),
    Domain.TEAM_PHOTO: _make_pack(
        Domain.TEAM_PHOTO,
        "Team photo",
        (AxisId.FIELD_STRENGTH, AxisId.WIN_WIN_INTEGRITY, AxisId.ASSUMPTIVE_STATE),
    ),
    Domain.LANDING_PAGE_HERO: _make_pack(
        Domain.LANDING_PAGE_HERO,
        "Landing page hero",
        (
            AxisId.BUYER_SELLER_POSITION,
            AxisId.PERSUASION_STYLE,
            AxisId.INTERNAL_SALE,
            AxisId.FIELD_STRENGTH,
        ),
    ),
    Domain.SOCIAL_POST_IMAGE: _make_pack(
        Domain.SOCIAL_POST_IMAGE,
        "Social post image",
        (AxisId.FIELD_STRENGTH, AxisId.IDENTITY_VS_TACTIC, AxisId.PEDESTALIZATION),
    ),
}

DEFAULT_DOMAIN = Domain.GENERIC


def get_domain_pack(domain: Domain | str) -> DomainPack:
    """Retrieve the weight pack for a domain. Fail-closed on unknown domain.

    Args:
        domain: Content domain (enum or its string value).

    Returns:
        DomainPack for the domain.

    Raises:
        DomainPackNotFoundError: If no pack is registered for the domain.
    """
    try:
        key = Domain(domain)
    except ValueError as exc:
        raise DomainPackNotFoundError(f"No domain pack for domain: {domain}") from exc
    pack = _DOMAIN_PACKS.get(key)
    if pack is None:
        raise DomainPackNotFoundError(f"No domain pack for domain: {key.value}")
    return pack


def list_domain_packs(modality: Modality | None = None) -> list[DomainPack]:
    """Return registered packs, optionally filtered by modality."""
    return [
        pack for pack in _DOMAIN_PACKS.values() if modality is None or pack.modality == modality
    ]
