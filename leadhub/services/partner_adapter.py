"""
Normalizes the partner shapes callers send into a PartnerRef.

Dashboard payloads identify a partner several ways: a bare id, a partner
document with ``_id``/``id``, a ``partnerId`` field, or a nested
``partner`` object. All of that reconciliation happens here so the
workflow only ever sees ``PartnerRef``.
"""
from collections.abc import Mapping

from pydantic import ValidationError as PydanticValidationError

from leadhub.models.partner import Partner
from leadhub.obs.errors import ValidationError
from leadhub.schemas.partners import PartnerRef

# Checked in order; the first non-empty value wins
LEGACY_ID_FIELDS = ("partnerId", "_id", "id", "partner_id", "partnerCode", "partner_code")


def normalize_partner_ref(raw) -> PartnerRef:
    """
    Return the PartnerRef for ``raw``.

    Raises:
        ValidationError: when no partner identifier can be found
    """
    if isinstance(raw, PartnerRef):
        return raw

    if isinstance(raw, Partner):
        return _build(raw.id)

    if isinstance(raw, str):
        return _build(raw)

    if isinstance(raw, Mapping):
        for field in LEGACY_ID_FIELDS:
            value = raw.get(field)
            if isinstance(value, str) and value.strip():
                return _build(value)
            if isinstance(value, Mapping):
                return normalize_partner_ref(value)

        nested = raw.get("partner")
        if nested is not None:
            return normalize_partner_ref(nested)

    raise ValidationError("Partner reference is missing or malformed", received=type(raw).__name__)


def _build(value: str) -> PartnerRef:
    try:
        return PartnerRef(id=value)
    except PydanticValidationError as e:
        raise ValidationError("Partner reference is blank") from e
