from __future__ import annotations

"""Profile filter: decides whether a node belongs to a publishing profile.

A profile is loaded from a DITAVAL file::

    <val>
      <prop att="product" val="pub1" action="include"/>
      <prop att="product" val="pub2" action="exclude"/>
    </val>

Evaluation follows DITA conditional processing:

- values of a profiling attribute are split on whitespace (and commas);
- a node is excluded when, for at least one attribute, *every* value it
  carries resolves to ``exclude``;
- for one value, an ``exclude`` rule always beats an ``include`` rule;
- a value-less rule (``<prop att="product" action="exclude"/>``) is the
  default for values of that attribute without their own rule, and an
  attribute-less rule is the default for everything;
- anything matching no rule is included.

The predicate is pure; it never touches the node.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from lxml import etree as ET

from dita_l10n.core.exceptions import InputError
from dita_l10n.core.utils import local_name, parse_xml_file, split_tokens

logger = logging.getLogger(__name__)

__all__ = ["ProfileRule", "Ruleset", "load_ditaval", "included"]

INCLUDE = "include"
EXCLUDE = "exclude"
# DITAVAL actions that keep content; flagging is a rendering concern
_KEEP_ACTIONS = {INCLUDE, "passthrough", "flag"}


@dataclass(frozen=True)
class ProfileRule:
    """One ``(attribute, value, action)`` rule; ``None`` means "any"."""

    attribute: Optional[str]
    value: Optional[str]
    action: str

    def __post_init__(self) -> None:
        if self.action not in _KEEP_ACTIONS and self.action != EXCLUDE:
            raise ValueError(f"Unknown profile action: {self.action}")

    @property
    def excludes(self) -> bool:
        return self.action == EXCLUDE


@dataclass
class Ruleset:
    """Ordered list of rules making up one publishing profile."""

    rules: List[ProfileRule] = field(default_factory=list)
    name: Optional[str] = None

    @property
    def attributes(self) -> List[str]:
        names: List[str] = []
        for rule in self.rules:
            if rule.attribute and rule.attribute not in names:
                names.append(rule.attribute)
        return names

    def resolve(self, attribute: str, value: str) -> Optional[str]:
        """Return ``include``/``exclude`` for one attribute value, or None when unruled."""
        for candidates in (
            [r for r in self.rules if r.attribute == attribute and r.value == value],
            [r for r in self.rules if r.attribute == attribute and r.value is None],
            [r for r in self.rules if r.attribute is None],
        ):
            if candidates:
                return EXCLUDE if any(r.excludes for r in candidates) else INCLUDE
        return None


def load_ditaval(path: Union[str, Path], name: Optional[str] = None) -> Ruleset:
    """Parse a DITAVAL file into a :class:`Ruleset`.

    Raises :class:`InputError` for unreadable files, a root other than
    ``<val>`` or a ``<prop>`` with an unknown action.
    """
    path = Path(path)
    root = parse_xml_file(path).getroot()
    if local_name(root) != "val":
        raise InputError("Not a DITAVAL file: root element must be <val>", path)

    rules: List[ProfileRule] = []
    for prop in root.iter("{*}prop"):
        action = (prop.get("action") or "").strip()
        try:
            rules.append(ProfileRule(prop.get("att") or None, prop.get("val") or None, action))
        except ValueError as exc:
            raise InputError(str(exc), path, exc)

    ruleset = Ruleset(rules, name or path.stem)
    logger.debug("Profile loaded name=%s rules=%d path=%s", ruleset.name, len(rules), path)
    return ruleset


def included(node: ET._Element, ruleset: Optional[Ruleset],
             attributes: Optional[Iterable[str]] = None) -> bool:
    """Return True when *node* belongs to the profile described by *ruleset*.

    *attributes* restricts evaluation to the given profiling attribute names;
    by default every attribute named by a rule is considered.
    """
    if ruleset is None or not ruleset.rules:
        return True
    if not isinstance(getattr(node, "tag", None), str):
        return True

    names = list(attributes) if attributes is not None else ruleset.attributes
    global_rules = any(r.attribute is None for r in ruleset.rules)
    for attribute in names:
        if attribute not in ruleset.attributes and not global_rules:
            continue
        values = split_tokens(node.get(attribute))
        if not values:
            continue
        if all(ruleset.resolve(attribute, value) == EXCLUDE for value in values):
            return False
    return True
