# tests/test_credential_resolver.py
"""Unit tests for credential resolution (QR payload / typed code → employee)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import AsyncMock
from app.models.enums import PersonType
from app.services.credential_resolver import extract_identifier, resolve_credential
from app.services.directory_client import DirectoryEmployee
from app.services.exceptions import CredentialNotFound, DirectoryUnavailable, InvalidCredential


class TestExtractIdentifier:
    def test_prefix_is_stripped(self):
        assert extract_identifier("FELKA_EMP_42", prefix="FELKA_EMP_") == "42"

    def test_prefix_match_ignores_case(self):
        assert extract_identifier("felka_emp_42", prefix="FELKA_EMP_") == "42"

    def test_unprefixed_token_used_verbatim(self):
        assert extract_identifier("  42 ", prefix="FELKA_EMP_") == "42"

    @pytest.mark.parametrize("token", ["", "   ", "FELKA_EMP_", None])
    def test_empty_identifier_rejected(self, token):
        with pytest.raises(InvalidCredential):
            extract_identifier(token, prefix="FELKA_EMP_")


class TestResolveCredential:
    @pytest.mark.asyncio
    async def test_prefixed_badge_resolves_employee(self, directory):
        credential = await resolve_credential("FELKA_EMP_42", directory)

        assert credential.person_type == PersonType.EMPLOYEE
        assert credential.person_id == "42"
        assert credential.person_name == "Maria Silva"
        assert credential.person_cpf == "12345678901"

    @pytest.mark.asyncio
    async def test_typed_cpf_resolves_employee(self, directory):
        credential = await resolve_credential("987.654.321-00", directory)
        assert credential.person_id == "7"

    @pytest.mark.asyncio
    async def test_unknown_credential_not_found(self, directory):
        with pytest.raises(CredentialNotFound):
            await resolve_credential("FELKA_EMP_999", directory)

    @pytest.mark.asyncio
    async def test_empty_token_never_reaches_directory(self):
        directory = AsyncMock()
        with pytest.raises(InvalidCredential):
            await resolve_credential("FELKA_EMP_", directory)
        directory.lookup_employee.assert_not_called()

    @pytest.mark.asyncio
    async def test_directory_outage_propagates(self, directory):
        directory.available = False
        with pytest.raises(DirectoryUnavailable):
            await resolve_credential("FELKA_EMP_42", directory)

    @pytest.mark.asyncio
    async def test_only_employee_lookup_is_used(self):
        directory = AsyncMock()
        directory.lookup_employee.return_value = DirectoryEmployee(id="42", name="Maria Silva")

        await resolve_credential("FELKA_EMP_42", directory)

        directory.lookup_employee.assert_awaited_once_with("42")
        directory.lookup_vehicle.assert_not_called()
        directory.lookup_driver.assert_not_called()
