"""
Naming utilities for sqlweave.
"""


def to_snake_case(name: str) -> str:
    """
    Convert ``FieldName`` / ``fieldName`` to ``field_name``.

    Acronyms stay together: ``UserID`` becomes ``user_id`` and
    ``HTTPServer`` becomes ``http_server``.
    """
    chars: list[str] = []
    for index, char in enumerate(name):
        if char.isupper() and index > 0:
            previous = name[index - 1]
            following = name[index + 1] if index + 1 < len(name) else ""
            if previous.islower() or previous.isdigit() or (
                previous.isupper() and following.islower()
            ):
                chars.append("_")
        chars.append(char.lower())
    return "".join(chars)
