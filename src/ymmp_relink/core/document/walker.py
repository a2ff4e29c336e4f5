"""Extract file path leaves from a parsed project tree."""

import itertools
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from ymmp_relink.config import COLLECTION_KEY, REFERENCE_KEY, TYPE_HINT_KEYS
from ymmp_relink.core.document.reader import Members


@dataclass(frozen=True)
class ExtractionRules:
    """Keys that decide what counts as a file reference."""

    reference_key: str = REFERENCE_KEY
    collection_key: str = COLLECTION_KEY
    type_hint_keys: tuple[str, ...] = field(default=TYPE_HINT_KEYS)


DEFAULT_RULES = ExtractionRules()


@dataclass(frozen=True)
class WalkContext:
    """State handed down one level of the walk."""

    inside_collection: bool = False
    type_hint: str = ""


@dataclass(frozen=True)
class PathLeaf:
    """A reference-key string found in the tree.

    ``ordinal`` counts every string-valued reference-key member in document
    order, including the ones outside a collection, so it lines up with
    ``iter_string_members`` over the raw text.
    """

    ordinal: int
    path: str
    type_hint: str
    is_reference: bool


def _type_hint(members: Members, rules: ExtractionRules, fallback: str) -> str:
    values = dict(members)
    for key in rules.type_hint_keys:
        value = values.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return fallback


def _walk(
    node: Any,
    ctx: WalkContext,
    rules: ExtractionRules,
    ordinals: Iterator[int],
) -> Iterator[PathLeaf]:
    if isinstance(node, Members):
        hint = _type_hint(node, rules, ctx.type_hint)
        for key, value in node:
            if key == rules.reference_key and isinstance(value, str):
                yield PathLeaf(
                    ordinal=next(ordinals),
                    path=value,
                    type_hint=hint,
                    is_reference=ctx.inside_collection and bool(value.strip()),
                )
                continue
            child = WalkContext(
                inside_collection=ctx.inside_collection or key == rules.collection_key,
                type_hint=hint,
            )
            yield from _walk(value, child, rules, ordinals)
    elif isinstance(node, list):
        for item in node:
            yield from _walk(item, ctx, rules, ordinals)


def collect_path_leaves(tree: Any, rules: ExtractionRules = DEFAULT_RULES) -> list[PathLeaf]:
    """Walk the tree depth-first in document order and return all path leaves.

    Only leaves with ``is_reference`` set are file references; the rest are
    returned so their ordinals stay aligned with the raw text.
    """
    return list(_walk(tree, WalkContext(), rules, itertools.count()))
