import pytest

from elasticpool.core.entities.provider_id import format_provider_id, parse_provider_id
from elasticpool.core.errors import MalformedInputError
from tests.fakes import make_instance


@pytest.mark.parametrize(
    "zone, instance_id",
    [
        ("us-east-1a", "i-1"),
        ("eu-west-3c", "i-0123456789abcdef0"),
        ("ap-southeast-2b", "i-x"),
    ],
)
def test_round_trip(zone, instance_id):
    assert parse_provider_id(format_provider_id(zone, instance_id)) == (zone, instance_id)


def test_format_is_literal():
    assert format_provider_id("us-east-1a", "i-1") == "aws:///us-east-1a/i-1"


def test_instance_provider_id():
    assert make_instance("i-1", "us-east-1a").provider_id == "aws:///us-east-1a/i-1"


@pytest.mark.parametrize(
    "value",
    ["", "aws://us-east-1a/i-1", "gce:///us-east-1a/i-1", "aws:///us-east-1a", "aws:///us-east-1a/i-1/extra", "aws:////i-1"],
)
def test_malformed_provider_ids_are_rejected(value):
    with pytest.raises(MalformedInputError):
        parse_provider_id(value)
