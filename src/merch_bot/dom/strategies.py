"""
Typed element query descriptors.

A Strategy describes one way of finding an element: by accessible role and
name, by CSS selector, or by text content. Ordered tuples of strategies are
handed to the ElementResolver, which tries them in order. Fallbacks are added
by appending descriptors to a tuple, not by adding branches.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

ROLE = 'role'
CSS = 'css'
TEXT = 'text'

TextQuery = Union[str, re.Pattern]


@dataclass(frozen=True)
class Strategy:
    kind: str
    selector: str = ''
    role: str = ''
    name: Optional[TextQuery] = None
    has_text: Optional[TextQuery] = None
    exact: bool = False
    within: str = ''

    def locate(self, root: Any):
        """Build the locator for this strategy against a page, frame or locator"""
        scope = root.locator(self.within) if self.within else root

        if self.kind == ROLE:
            if self.name is None:
                locator = scope.get_by_role(self.role)
            else:
                locator = scope.get_by_role(self.role, name=self.name, exact=self.exact)
        elif self.kind == TEXT:
            locator = scope.get_by_text(self.name, exact=self.exact)
        else:
            locator = scope.locator(self.selector)

        if self.has_text is not None:
            locator = locator.filter(has_text=self.has_text)
        return locator

    def describe(self) -> str:
        prefix = f"{self.within} >> " if self.within else ''
        if self.kind == ROLE:
            name = self.name.pattern if isinstance(self.name, re.Pattern) else self.name
            body = f"role={self.role}" + (f"[name={name!r}]" if name is not None else '')
        elif self.kind == TEXT:
            name = self.name.pattern if isinstance(self.name, re.Pattern) else self.name
            body = f"text={name!r}"
        else:
            body = self.selector
        if self.has_text is not None:
            text = self.has_text.pattern if isinstance(self.has_text, re.Pattern) else self.has_text
            body = f"{body} (has_text={text!r})"
        return prefix + body


def role(role_name: str, name: Optional[TextQuery] = None, *, exact: bool = False,
         within: str = '', has_text: Optional[TextQuery] = None) -> Strategy:
    return Strategy(kind=ROLE, role=role_name, name=name, exact=exact, within=within, has_text=has_text)


def css(selector: str, *, has_text: Optional[TextQuery] = None, within: str = '') -> Strategy:
    return Strategy(kind=CSS, selector=selector, has_text=has_text, within=within)


def text(value: TextQuery, *, exact: bool = False, within: str = '') -> Strategy:
    return Strategy(kind=TEXT, name=value, exact=exact, within=within)


def pattern(source: str) -> re.Pattern:
    """Case-insensitive regular expression for role names and text filters"""
    return re.compile(source, re.IGNORECASE)
