"""
Organization resolution strategies.

Before a handoff can start, the raw user input (an email address in the
default policy) has to be mapped to the organization identifier the broker
knows the customer by. The mapping is a strategy: any deterministic function
from input to a non-empty identifier will do.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from handoff.exceptions import InvalidOrganizationInput

logger = logging.getLogger(__name__)


class OrganizationResolver(ABC):
    """Maps raw user input to an organization identifier."""

    @abstractmethod
    def resolve(self, user_input: Optional[str]) -> str:
        """
        Resolve an organization identifier.

        Returns:
            A non-empty organization identifier

        Raises:
            InvalidOrganizationInput: If the input carries no resolvable organization
        """


class EmailDomainResolver(OrganizationResolver):
    """
    Use the email domain as the organization identifier.

    "john.doe@example.com" resolves to "example.com". Domains are compared
    case-insensitively, so the result is lower-cased. An optional allow-list
    restricts which domains may start a handoff at all.
    """

    def __init__(self, allowed_domains: Optional[Iterable[str]] = None):
        self.allowed_domains = frozenset(
            d.strip().lower() for d in (allowed_domains or ()) if d.strip()
        )

    def resolve(self, user_input: Optional[str]) -> str:
        value = (user_input or "").strip()
        if not value:
            raise InvalidOrganizationInput(
                "Enter your work email address to sign in",
                field="email",
            )

        _, sep, domain = value.partition("@")
        domain = domain.lower()

        if not sep or not domain:
            raise InvalidOrganizationInput(field="email", value=value)

        if "@" in domain or any(ch.isspace() for ch in domain):
            raise InvalidOrganizationInput(field="email", value=value)

        if domain.startswith(".") or domain.endswith("."):
            raise InvalidOrganizationInput(field="email", value=value)

        if self.allowed_domains and domain not in self.allowed_domains:
            logger.warning(f"Handoff rejected: email domain {domain} is not allowed")
            raise InvalidOrganizationInput(
                f"Single sign-on is not available for {domain}",
                field="email",
                value=value,
            )

        return domain
