"""Name helpers shared by controllers, routes and records."""

from pydantic.alias_generators import to_snake


def pascal_to_camel(name: str) -> str:
    """`UserProfile` → `userProfile`."""
    return name[:1].lower() + name[1:]


def camel_to_snake(name: str) -> str:
    """`userId` → `user_id`; snake_case input is returned unchanged."""
    return to_snake(name)
