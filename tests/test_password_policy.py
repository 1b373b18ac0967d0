"""
Tests for Password Policy Validation

Ensures password strength requirements are properly enforced.
"""
import pytest
from core.password_policy import validate_password

from conftest import signup_payload


class TestPasswordValidation:
    """Tests for validate_password function"""

    def test_valid_strong_password(self):
        """Should accept a password meeting all requirements"""
        valid, errors = validate_password("IronForge2024")
        assert valid is True
        assert len(errors) == 0

    def test_reject_short_password(self):
        """Should reject password shorter than 8 characters"""
        valid, errors = validate_password("Abc123")
        assert valid is False
        assert any("at least 8 characters" in e for e in errors)

    def test_reject_long_password(self):
        """Should reject password longer than 72 bytes (bcrypt limit)"""
        valid, errors = validate_password("A1" + "a" * 71)
        assert valid is False
        assert any("72 characters" in e for e in errors)

    def test_multibyte_password_counts_bytes(self):
        """Should measure the bcrypt limit in UTF-8 bytes, not characters"""
        # 40 characters but 80+ bytes
        valid, errors = validate_password("A1" + "é" * 38)
        assert valid is False
        assert any("72 characters" in e for e in errors)

    def test_reject_no_uppercase(self):
        """Should reject password without uppercase letter"""
        valid, errors = validate_password("ironforge2024")
        assert valid is False
        assert any("uppercase" in e for e in errors)

    def test_reject_no_digit(self):
        """Should reject password without a number"""
        valid, errors = validate_password("IronForgeGym")
        assert valid is False
        assert any("number" in e for e in errors)

    def test_multiple_errors_returned(self):
        """Should return all applicable errors"""
        valid, errors = validate_password("abc")
        assert valid is False
        assert len(errors) == 3

    def test_edge_case_exactly_8_chars(self):
        valid, errors = validate_password("Abcdefg1")
        assert valid is True

    def test_edge_case_exactly_72_chars(self):
        valid, errors = validate_password("A1" + "a" * 70)
        assert valid is True


class TestPasswordPolicyInSignup:
    """The policy is enforced by the signup and change-password bodies."""

    @pytest.mark.parametrize("password", ["short1A", "alllowercase1", "NoDigitsHere"])
    def test_signup_weak_password_rejected(self, client, password):
        response = client.post("/api/auth/signup", json=signup_payload(password=password))

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert any(err["loc"][-1] == "password" for err in body["errors"])

    def test_change_password_weak_new_password_rejected(self, bearer):
        response = bearer["client"].post("/api/auth/change-password", json={
            "current_password": "IronForge2024",
            "new_password": "weak",
        })
        assert response.status_code == 422
