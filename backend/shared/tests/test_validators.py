import pytest

from shared.validators import DEFAULT_WINDOW_SECONDS, parse_string_list, parse_string_mapping, parse_window


class TestParseStringList:
    def test_json_array_string(self):
        result = parse_string_list('["http://a.com","http://b.com"]')
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_string(self):
        result = parse_string_list("http://a.com,http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_with_whitespace(self):
        result = parse_string_list("http://a.com , http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_passthrough_list(self):
        origins = ["http://a.com", "http://b.com"]
        result = parse_string_list(origins)
        assert result == origins

    def test_empty_string_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("")

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list("[not valid json")

    def test_json_mixed_types_array_raises(self):
        with pytest.raises(ValueError, match="must be an array of strings"):
            parse_string_list('["http://a.com", 123]')

    def test_json_empty_array_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("[]")

    def test_empty_list_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list([])

    def test_comma_separated_skips_empty_segments(self):
        result = parse_string_list("http://a.com,,http://b.com,")
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_only_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(",")

    def test_multiple_commas_only_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(",,,,")

    def test_empty_string_allowed_when_requested(self):
        assert parse_string_list("  ", allow_empty=True) == []


class TestParseStringMapping:
    def test_json_object_string(self):
        assert parse_string_mapping('{"mara": "pw1", "baru": "$2b$12$abc"}') == {"mara": "pw1", "baru": "$2b$12$abc"}

    def test_comma_separated_pairs(self):
        assert parse_string_mapping("mara=pw1, baru = pw2") == {"mara": "pw1", "baru": "pw2"}

    def test_value_may_contain_equals(self):
        assert parse_string_mapping("mara=a=b") == {"mara": "a=b"}

    def test_passthrough_dict(self):
        users = {"mara": "pw"}
        assert parse_string_mapping(users) is users

    def test_empty_string_is_empty_mapping(self):
        assert parse_string_mapping("") == {}

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON object"):
            parse_string_mapping("{not json")

    def test_non_string_values_raise(self):
        with pytest.raises(ValueError, match="object of strings"):
            parse_string_mapping('{"mara": 1}')

    def test_pair_without_separator_raises(self):
        with pytest.raises(ValueError, match="Expected name=value"):
            parse_string_mapping("mara")


class TestParseWindow:
    @pytest.mark.parametrize(
        ("window", "expected"),
        [
            ("10 m", 600),
            ("1 m", 60),
            ("30s", 30),
            ("1h", 3600),
            ("1d", 86400),
            ("2 H", 7200),
            ("45", 45),
            (90, 90),
        ],
    )
    def test_parses_supported_forms(self, window, expected):
        assert parse_window(window) == expected

    @pytest.mark.parametrize("window", ["", "soon", "10 weeks", "m10", "-5 m", 0, -3])
    def test_unparseable_falls_back_to_one_minute(self, window):
        assert parse_window(window) == DEFAULT_WINDOW_SECONDS
