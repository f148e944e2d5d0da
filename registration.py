from dataclasses import dataclass

from errors import ValidationError


@dataclass(frozen=True)
class UserProfile:
    display_name: str
    group_name: str


def build_profile(display_name, group_name, group_suffix="셀"):
    """Validate registration input and normalise the group name.

    Both fields are trimmed and must be non-empty. When ``group_suffix`` is
    set, it is appended to group names that do not already end with it.
    """
    for value in (display_name, group_name):
        if value is not None and not isinstance(value, str):
            raise ValidationError("Group and name must be text.")
    name = (display_name or "").strip()
    group = (group_name or "").strip()
    if not name or not group:
        raise ValidationError("Please enter both your group and your name.")
    if group_suffix and not group.endswith(group_suffix):
        group += group_suffix
    return UserProfile(display_name=name, group_name=group)


class ProfileStorage:
    """Keeps the profile in a per-device string mapping (the Flask session)."""

    def __init__(self, storage, prefix):
        self._storage = storage
        self.name_key = f"{prefix}-userName"
        self.group_key = f"{prefix}-cellName"

    def load(self):
        name = self._storage.get(self.name_key)
        group = self._storage.get(self.group_key)
        if name and group:
            return UserProfile(display_name=name, group_name=group)
        return None

    def save(self, profile):
        self._storage[self.name_key] = profile.display_name
        self._storage[self.group_key] = profile.group_name

    def clear(self):
        self._storage.pop(self.name_key, None)
        self._storage.pop(self.group_key, None)
