"""Placeholder substitution for command templates."""

from typing import Mapping


def render(template: str, substitutions: Mapping[str, str]) -> str:
    """
    Replace every ``${key}`` token in a template with its substitution value.

    Keys are applied in mapping order. For each key, occurrences are replaced
    left to right and the search resumes right after the inserted value, so a
    value containing its own token is not expanded again. Placeholders with no
    matching key are left untouched. No shell escaping is performed.

    Args:
        template: Command template, e.g. ``"echo ${file}"``.
        substitutions: Mapping of placeholder names to literal values.

    Returns:
        The resolved command string.
    """
    result = template
    for key, value in substitutions.items():
        token = "${" + key + "}"
        value = str(value)
        pos = result.find(token)
        while pos != -1:
            result = result[:pos] + value + result[pos + len(token):]
            pos = result.find(token, pos + len(value))
    return result
