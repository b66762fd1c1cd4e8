"""
Tests for organization resolution from user input.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from handoff.exceptions import ErrorCode, InvalidOrganizationInput
from handoff.organizations import EmailDomainResolver, OrganizationResolver


class TestEmailDomainResolver(unittest.TestCase):
    """Tests for the default email-domain policy."""

    def setUp(self):
        self.resolver = EmailDomainResolver()

    def test_is_an_organization_resolver(self):
        self.assertIsInstance(self.resolver, OrganizationResolver)

    def test_resolves_domain_of_email(self):
        self.assertEqual(self.resolver.resolve("john.doe@example.com"), "example.com")

    def test_resolves_other_domains(self):
        self.assertEqual(self.resolver.resolve("jane@example.org"), "example.org")
        self.assertEqual(self.resolver.resolve("ops@sub.corp.example.net"), "sub.corp.example.net")

    def test_domain_is_lower_cased(self):
        self.assertEqual(self.resolver.resolve("John.Doe@Example.COM"), "example.com")

    def test_surrounding_whitespace_is_ignored(self):
        self.assertEqual(self.resolver.resolve("  john.doe@example.com \n"), "example.com")

    def test_is_deterministic(self):
        first = self.resolver.resolve("john.doe@example.com")
        second = self.resolver.resolve("john.doe@example.com")
        self.assertEqual(first, second)

    def test_empty_input_is_rejected(self):
        for value in (None, "", "   "):
            with self.subTest(value=value):
                with self.assertRaises(InvalidOrganizationInput) as ctx:
                    self.resolver.resolve(value)
                self.assertEqual(ctx.exception.status_code, 400)
                self.assertEqual(ctx.exception.details["field"], "email")

    def test_input_without_at_sign_is_rejected(self):
        with self.assertRaises(InvalidOrganizationInput) as ctx:
            self.resolver.resolve("john.doe.example.com")
        self.assertEqual(ctx.exception.error_code, ErrorCode.INVALID_ORGANIZATION_INPUT)

    def test_empty_domain_is_rejected(self):
        with self.assertRaises(InvalidOrganizationInput):
            self.resolver.resolve("john.doe@")

    def test_malformed_domains_are_rejected(self):
        for value in ("a@b@example.com", "john@exa mple.com", "john@.example.com", "john@example.com."):
            with self.subTest(value=value):
                with self.assertRaises(InvalidOrganizationInput):
                    self.resolver.resolve(value)

    def test_rejected_value_is_reported_in_details(self):
        with self.assertRaises(InvalidOrganizationInput) as ctx:
            self.resolver.resolve("not-an-email")
        self.assertEqual(ctx.exception.details["value"], "not-an-email")


class TestEmailDomainAllowList(unittest.TestCase):
    """Tests for the optional domain allow-list."""

    def setUp(self):
        self.resolver = EmailDomainResolver(allowed_domains=["example.com", " Example.ORG ", ""])

    def test_allowed_domain_resolves(self):
        self.assertEqual(self.resolver.resolve("john.doe@example.com"), "example.com")
        self.assertEqual(self.resolver.resolve("jane@EXAMPLE.org"), "example.org")

    def test_domain_outside_allow_list_is_rejected(self):
        with self.assertRaises(InvalidOrganizationInput) as ctx:
            self.resolver.resolve("mallory@evil.test")
        self.assertIn("evil.test", ctx.exception.message)

    def test_empty_allow_list_allows_any_domain(self):
        resolver = EmailDomainResolver(allowed_domains=[])
        self.assertEqual(resolver.resolve("anyone@anywhere.test"), "anywhere.test")


if __name__ == "__main__":
    unittest.main()
