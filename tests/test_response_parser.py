"""Tests for mapping upstream payloads to image references."""

from __future__ import annotations

import pytest

from models.image_reference import ImageReference
from services.errors import SourceMalformed
from services.source.response_parser import parse_image_payload


class TestParseImagePayload:
    def test_bare_list_with_links(self):
        refs = parse_image_payload([
            {"id": "abc", "link": "https://cdn.example/abc.jpg"},
            {"id": "def", "url": "https://cdn.example/def.png"},
        ])
        assert refs == [
            ImageReference("abc", "https://cdn.example/abc.jpg"),
            ImageReference("def", "https://cdn.example/def.png"),
        ]

    def test_data_envelope_and_template_fallback(self):
        refs = parse_image_payload({"data": [{"id": "xyz"}], "success": True})
        assert refs == [ImageReference("xyz", "https://i.imgur.com/xyz.png")]

    def test_custom_template(self):
        refs = parse_image_payload([{"id": 42}], url_template="https://img.example/{id}.webp")
        assert refs == [ImageReference("42", "https://img.example/42.webp")]

    def test_album_uses_cover(self):
        refs = parse_image_payload([
            {"id": "album1", "is_album": True, "cover": "cov", "link": "https://imgur.com/a/album1"},
            {"id": "album2", "is_album": True},
        ])
        assert refs == [ImageReference("cov", "https://i.imgur.com/cov.png")]

    def test_skips_unmappable_descriptors(self):
        refs = parse_image_payload([{"title": "no id"}, "junk", {"id": "ok"}])
        assert [ref.id for ref in refs] == ["ok"]

    def test_empty_list_is_valid(self):
        assert parse_image_payload([]) == []
        assert parse_image_payload({"data": []}) == []

    @pytest.mark.parametrize("payload", [None, "text", 12, {"items": []}, {"data": "nope"}])
    def test_wrong_shape_is_malformed(self, payload):
        with pytest.raises(SourceMalformed):
            parse_image_payload(payload)

    def test_nothing_mappable_is_malformed(self):
        with pytest.raises(SourceMalformed):
            parse_image_payload([{"id": ""}, {"id": True}, {}])
