"""
Unit Tests - Configuration Validation
"""
import pytest

from custom_dimensions.dimensions.exceptions import InvalidActiveFlag, InvalidName, InvalidScope
from custom_dimensions.dimensions.scope import Scope, get_public_scopes, validate_scope
from custom_dimensions.dimensions.validators import validate_active, validate_name


class TestScopeValidation:
    """Tests for scope validation"""
    
    @pytest.mark.parametrize("value", ["visit", "VISIT", " Visit "])
    def test_visit_scope_accepted(self, value):
        assert validate_scope(value) == Scope.VISIT
    
    def test_action_scope_accepted(self):
        assert validate_scope("action") == Scope.ACTION
    
    def test_scope_enum_passes_through(self):
        assert validate_scope(Scope.ACTION) is Scope.ACTION
    
    @pytest.mark.parametrize("value", ["conversion", "", None, 1])
    def test_unknown_scope_rejected(self, value):
        with pytest.raises(InvalidScope) as exc_info:
            validate_scope(value)
        
        assert exc_info.value.code == "invalid_scope"
        assert exc_info.value.field == "scope"
    
    def test_public_scopes(self):
        assert get_public_scopes() == [Scope.VISIT, Scope.ACTION]


class TestNameValidation:
    """Tests for name validation"""
    
    def test_name_returned_unchanged(self):
        assert validate_name("Product Category") == "Product Category"
    
    @pytest.mark.parametrize("value", ["", "   ", None, 42])
    def test_empty_or_non_string_rejected(self, value):
        with pytest.raises(InvalidName) as exc_info:
            validate_name(value)
        
        assert exc_info.value.field == "name"
    
    def test_name_at_limit_accepted(self):
        assert validate_name("a" * 10, max_length=10) == "a" * 10
    
    def test_too_long_name_rejected(self):
        with pytest.raises(InvalidName) as exc_info:
            validate_name("a" * 11, max_length=10)
        
        assert exc_info.value.details["max_length"] == 10
    
    def test_default_limit_from_settings(self):
        validate_name("a" * 255)
        with pytest.raises(InvalidName):
            validate_name("a" * 256)


class TestActiveValidation:
    """Tests for the activation flag"""
    
    @pytest.mark.parametrize("value,expected", [
        (True, True),
        (False, False),
        (1, True),
        (0, False),
        ("1", True),
        ("0", False),
    ])
    def test_accepted_values(self, value, expected):
        assert validate_active(value) is expected
    
    @pytest.mark.parametrize("value", ["true", "yes", 2, -1, 1.0, None, ""])
    def test_rejected_values(self, value):
        with pytest.raises(InvalidActiveFlag) as exc_info:
            validate_active(value)
        
        assert exc_info.value.code == "invalid_active_flag"
        assert exc_info.value.field == "active"
