"""
Idempotency fingerprints for conditional preference updates.

Each store records, on the updated preference, the fingerprint of the last
update it applied. An update is applied only if its fingerprint differs from
the recorded one (compare-and-swap), so an immediately repeated delivery of
the same logical mutation is a no-op.

Two requests are "the same" when they share the acting user, the set of
attribute names they touch and the action's delta.
"""

from prefrec.domain.models import UpdateAction, UpdateRequest, UserProfile

SEPARATOR = "~~"


def build_idempotency_flag(
    user: UserProfile, request: UpdateRequest, action: UpdateAction
) -> str:
    """
    Build the fingerprint identifying one logical mutation.

    Args:
        user: User whose action caused the mutation
        request: Update being applied
        action: Increment or decrement

    Returns:
        '<user_id>~~<attribute names>~~<delta>'
    """
    attributes = "".join(request.attribute_names())
    return f"{user.id}{SEPARATOR}{attributes}{SEPARATOR}{action.delta}"
