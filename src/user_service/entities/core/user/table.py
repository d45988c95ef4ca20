"""Stored representation of users in the single table."""

from src.user_service.core.storage.expressions import Item, ItemUpdate
from src.user_service.entities.core.keys import user_key
from src.user_service.entities.core.user.entity import User, UserPatch


def to_user_item(user: User) -> Item:
    """Build the profile item stored at ``USER#<id>`` / ``PROFILE``."""
    return {**user_key(user.user_id), **user.to_attributes()}


def user_from_item(item: Item) -> User:
    return User.model_validate(item)


def build_user_update(patch: UserPatch, now: str) -> ItemUpdate:
    """Translate a patch into the store's update primitive.

    Set fields become SET actions, fields set to ``None`` become REMOVE
    actions, omitted fields are not mentioned. The version is always bumped
    and ``updatedAt`` always refreshed.
    """
    values: dict = {"updatedAt": now}
    removals: list[str] = []
    for name, info in type(patch).model_fields.items():
        if name not in patch.model_fields_set:
            continue
        attribute = info.alias or name
        value = getattr(patch, name)
        if value is None:
            removals.append(attribute)
        else:
            values[attribute] = value

    return ItemUpdate(set=values, remove=tuple(removals), add={"version": 1})
