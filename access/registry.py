from __future__ import annotations

from corpus.models import GlobalState


class AccessRegistry:
    """Permission checks over the identity sets held in GlobalState.

    The sets are read through the state object on every call so a restored
    snapshot is picked up without rebuilding the registry.
    """

    def __init__(self, state: GlobalState, *, owner_id: int) -> None:
        self.state = state
        self.owner_id = int(owner_id)

    def is_owner(self, user_id: int) -> bool:
        return int(user_id) == self.owner_id

    def is_moderator(self, user_id: int) -> bool:
        uid = int(user_id)
        if self.is_owner(uid):
            return True
        return uid in self.state.moderators and uid not in self.state.blacklist

    def is_permitted(self, user_id: int) -> bool:
        uid = int(user_id)
        return self.is_owner(uid) or uid not in self.state.blacklist

    def is_subscribed(self, user_id: int) -> bool:
        return int(user_id) in self.state.whitelist

    def toggle_moderator(self, user_id: int) -> str:
        return _toggle(self.state.moderators, int(user_id))

    def toggle_whitelist(self, user_id: int) -> str:
        return _toggle(self.state.whitelist, int(user_id))

    def toggle_blacklist(self, user_id: int) -> str:
        return _toggle(self.state.blacklist, int(user_id))


def _toggle(members: set[int], user_id: int) -> str:
    if user_id in members:
        members.discard(user_id)
        return "removed"
    members.add(user_id)
    return "added"
