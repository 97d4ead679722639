"""Tests for the pending-queue spam hint."""

from modlens_core.utils.spam_hint import is_spam_candidate, spam_indicators


def test_clean_comment_has_no_indicators():
    assert spam_indicators("Alice", "Thanks, this helped a lot.") == []
    assert is_spam_candidate("Alice", "Thanks, this helped a lot.") is False


def test_many_links():
    content = "http://a.example http://b.example http://c.example"
    assert "links" in spam_indicators("Bob", content)


def test_two_links_are_not_enough():
    assert "links" not in spam_indicators("Bob", "http://a.example http://b.example")


def test_all_caps_over_twenty_chars():
    assert "all_caps" in spam_indicators("Bob", "THIS IS THE BEST DEAL EVER")
    assert "all_caps" not in spam_indicators("Bob", "OK THANKS")


def test_known_phrase():
    assert "phrase:check out my site" in spam_indicators("Bob", "Check out my site for more")


def test_long_author_name():
    assert "long_author" in spam_indicators("x" * 51, "hello")


def test_needs_two_indicators():
    assert is_spam_candidate("Bob", "Nice post!") is False
    assert is_spam_candidate("Bob", "Nice post! Check out my site please") is True
