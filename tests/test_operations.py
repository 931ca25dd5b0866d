"""
Operation Engine Tests
======================

apply_operation returns only the fields an operation touches and never raises.
"""

import pytest

from batchops.operations import apply_operation, find_replace


CURRENT = {"description": "Imported ingredient: Lime juice", "tags": ["citrus", "stale"]}


class TestDescriptionOperations:

    @pytest.mark.readonly
    def test_description_set(self):
        patch = apply_operation(CURRENT, {"type": "description_set", "payload": {"newText": "Fresh lime"}})
        assert patch == {"description": "Fresh lime"}

    @pytest.mark.readonly
    def test_description_set_empty_string_is_a_value(self):
        patch = apply_operation(CURRENT, {"type": "description_set", "payload": {"newText": ""}})
        assert patch == {"description": ""}

    @pytest.mark.readonly
    def test_description_set_without_text_is_no_change(self):
        assert apply_operation(CURRENT, {"type": "description_set", "payload": {}}) == {}

    @pytest.mark.readonly
    def test_find_replace_literal(self):
        op = {"type": "description_find_replace", "payload": {"find": "Imported ingredient: ", "replace": ""}}
        assert apply_operation(CURRENT, op) == {"description": "Lime juice"}

    @pytest.mark.readonly
    def test_find_replace_literal_replaces_every_occurrence(self):
        assert find_replace("banana", "a", "b") == "bbnbnb"
        assert find_replace("bAnAna", "a", "b") == "bAnAnb"

    @pytest.mark.readonly
    def test_find_replace_case_insensitive_replaces_every_occurrence(self):
        assert find_replace("Lime, LIME and lime", "lime", "yuzu", case_insensitive=True) == "yuzu, yuzu and yuzu"
        op = {"type": "description_find_replace",
              "payload": {"find": "A", "replace": "b", "caseInsensitive": True}}
        assert apply_operation({"description": "banana"}, op) == {"description": "bbnbnb"}

    @pytest.mark.readonly
    def test_find_replace_literal_case_insensitive(self):
        op = {"type": "description_find_replace",
              "payload": {"find": "LIME", "replace": "Key lime", "caseInsensitive": True}}
        assert apply_operation(CURRENT, op) == {"description": "Imported ingredient: Key lime juice"}

    @pytest.mark.readonly
    def test_find_replace_literal_does_not_interpret_specials(self):
        text = "a.b a+b"
        assert find_replace(text, ".", "-") == "a-b a+b"
        assert find_replace(text, "+", "-", case_insensitive=True) == "a.b a-b"

    @pytest.mark.readonly
    def test_find_replace_literal_replacement_keeps_backslashes(self):
        assert find_replace("x", "x", r"\1", case_insensitive=True) == r"\1"

    @pytest.mark.readonly
    def test_find_replace_regex_with_groups(self):
        op = {"type": "description_find_replace",
              "payload": {"find": r"(\w+) juice", "replace": r"fresh \1", "regex": True}}
        assert apply_operation(CURRENT, op) == {"description": "Imported ingredient: fresh Lime"}

    @pytest.mark.readonly
    def test_find_replace_invalid_regex_leaves_text(self):
        op = {"type": "description_find_replace", "payload": {"find": "(unclosed", "regex": True}}
        assert apply_operation(CURRENT, op) == {"description": CURRENT["description"]}

    @pytest.mark.readonly
    def test_find_replace_missing_replace_deletes(self):
        op = {"type": "description_find_replace", "payload": {"find": " juice"}}
        assert apply_operation(CURRENT, op) == {"description": "Imported ingredient: Lime"}

    @pytest.mark.readonly
    def test_find_replace_empty_find_is_no_change(self):
        op = {"type": "description_find_replace", "payload": {"find": "", "replace": "x"}}
        assert apply_operation(CURRENT, op) == {}

    @pytest.mark.readonly
    def test_find_replace_on_missing_description(self):
        op = {"type": "description_find_replace", "payload": {"find": "a", "replace": "b"}}
        assert apply_operation({"tags": []}, op) == {"description": ""}


class TestTagOperations:

    @pytest.mark.readonly
    def test_tags_add_normalizes_and_dedupes(self):
        op = {"type": "tags_add", "payload": {"add": ["Sour", "CITRUS"]}}
        assert apply_operation(CURRENT, op) == {"tags": ["citrus", "stale", "sour"]}

    @pytest.mark.readonly
    def test_tags_add_respects_cap(self):
        current = {"description": "", "tags": [f"t{i}" for i in range(7)]}
        op = {"type": "tags_add", "payload": {"add": ["x", "y"]}}
        assert apply_operation(current, op) == {"tags": [f"t{i}" for i in range(7)] + ["x"]}

    @pytest.mark.readonly
    def test_tags_remove_is_case_insensitive(self):
        op = {"type": "tags_remove", "payload": {"remove": ["STALE"]}}
        assert apply_operation(CURRENT, op) == {"tags": ["citrus"]}

    @pytest.mark.readonly
    def test_tags_remove_absent_tag(self):
        op = {"type": "tags_remove", "payload": {"remove": ["nope"]}}
        assert apply_operation(CURRENT, op) == {"tags": ["citrus", "stale"]}

    @pytest.mark.readonly
    def test_tags_replace(self):
        op = {"type": "tags_replace", "payload": {"newTags": [" Herb", "herb", "Sweet"]}}
        assert apply_operation(CURRENT, op) == {"tags": ["herb", "sweet"]}

    @pytest.mark.readonly
    def test_tags_replace_with_empty_list_clears(self):
        assert apply_operation(CURRENT, {"type": "tags_replace", "payload": {"newTags": []}}) == {"tags": []}


class TestUnknownOperations:

    @pytest.mark.readonly
    def test_unknown_type_is_no_change(self):
        assert apply_operation(CURRENT, {"type": "explode", "payload": {}}) == {}

    @pytest.mark.readonly
    def test_missing_payload_is_no_change(self):
        assert apply_operation(CURRENT, {"type": "description_set"}) == {}
