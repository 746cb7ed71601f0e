"""
Shared fixtures for fieldrules tests.
"""

import pytest

from fieldrules.logging import configure_logging
from fieldrules.validation import SchemaBuilder, Validator, rules

configure_logging("WARNING")


@pytest.fixture
def validator():
    return Validator()


@pytest.fixture
def phone_schema():
    return (SchemaBuilder("Phone")
        .field("number", rules("Phone number").not_null().length_range(7, 15), value_type=str)
        .build())


@pytest.fixture
def address_schema():
    return (SchemaBuilder("Address")
        .field("zipcode", rules("Zip code").not_null().length_range(5, 10), value_type=str)
        .field("street", rules("Street").not_null().exist_length_range(1, 50), value_type=str)
        .group("create", "zipcode")
        .build())


@pytest.fixture
def user_schema(address_schema, phone_schema):
    return (SchemaBuilder("User")
        .field("username", rules("Username").not_null().length_range(3, 20), value_type=str)
        .field("age", rules("Age").min(0).max(150), value_type=int)
        .nested("address", address_schema, optional=True)
        .nested("phones", phone_schema, rules("Phones").max(3), optional=True, collection=True)
        .group("create", "username", "age", "address")
        .group("update", "age")
        .build())
