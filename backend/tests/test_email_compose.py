import pytest

from domain.models import Template
from services.email_compose import build_mailto, compose_body, compose_subject, encode_component, is_valid_email


def test_compose_body_replaces_every_placeholder():
    assert compose_body("Hi {{name}},\n\nBest", "Bob") == "Hi Bob,\n\nBest"
    assert compose_body("{{name}} / {{name}}", "Ada") == "Ada / Ada"


def test_compose_body_falls_back_to_there():
    assert compose_body("Hi {{name}},\n\nBest", "") == "Hi there,\n\nBest"
    assert compose_body("Hi {{name}},\n\nBest", None) == "Hi there,\n\nBest"


def test_compose_body_without_placeholder_is_unchanged():
    assert compose_body("Hello!", "Bob") == "Hello!"


def test_compose_subject_defaults_when_blank():
    template = Template(name="t", image_data=None, font_size_px=80, font_color="#000", email_subject="")
    assert compose_subject(template) == "A personalized image for you"


def test_encode_component_matches_uri_component_rules():
    assert encode_component("a b&c=d/é?") == "a%20b%26c%3Dd%2F%C3%A9%3F"
    assert encode_component("keep-_.!~*'()") == "keep-_.!~*'()"


def test_build_mailto():
    url = build_mailto("bob@x.io", "Hi & welcome", "Line 1\nLine 2")
    assert url == "mailto:bob@x.io?subject=Hi%20%26%20welcome&body=Line%201%0ALine%202"


@pytest.mark.parametrize(
    "address, valid",
    [
        ("a@b.co", True),
        ("first.last+tag@sub.example.org", True),
        ("", False),
        (None, False),
        ("no-at.example.com", False),
        ("a@b", False),
        ("a b@c.io", False),
    ],
)
def test_is_valid_email(address, valid):
    assert is_valid_email(address) is valid
