from __future__ import annotations

import dataclasses
import functools


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_name(name: str) -> str:
    return name.strip().casefold()


@dataclasses.dataclass(frozen=True)
class AuthorIdentity:
    """
    Author filter for a run. A commit matches when either its author email
    (case-insensitive) or its author name (casefolded) equals the primary
    identity or one of the configured aliases.
    """

    email: str
    name: str
    extra_emails: tuple[str, ...] = ()
    extra_names: tuple[str, ...] = ()

    @functools.cached_property
    def emails(self) -> frozenset[str]:
        return frozenset(e for e in (normalize_email(x) for x in (self.email, *self.extra_emails)) if e)

    @functools.cached_property
    def names(self) -> frozenset[str]:
        return frozenset(n for n in (normalize_name(x) for x in (self.name, *self.extra_names)) if n)

    def is_empty(self) -> bool:
        return not self.emails and not self.names

    def matches(self, author_name: str, author_email: str) -> bool:
        email = normalize_email(author_email)
        if email and email in self.emails:
            return True
        name = normalize_name(author_name)
        return bool(name) and name in self.names
